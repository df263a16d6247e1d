"""
Identity clustering operations and crop persistence.

Every operation that moves images between identities recomputes the
affected identities' `image_count` from the link table rather than
adjusting it arithmetically.
"""
import logging
import re

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Count, Q

from . import crop as crop_geometry
from .models import FaceScrapeImage, FaceIdentity, FaceIdentityImage, FaceCrop

logger = logging.getLogger(__name__)

MODEL_NAME_RE = re.compile(r'^Model (\d+)$')


def refresh_counts(identity_ids):
    for identity in FaceIdentity.objects.filter(id__in=set(identity_ids)).annotate(
        n=Count('identity_images', filter=Q(identity_images__is_ignored=False))
    ):
        if identity.image_count != identity.n:
            identity.image_count = identity.n
            identity.save(update_fields=['image_count', 'updated_at'])


def next_model_name(run):
    highest = 0
    for name in FaceIdentity.objects.filter(run=run, name__startswith='Model ').values_list('name', flat=True):
        match = MODEL_NAME_RE.match(name)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"Model {highest + 1}"


@transaction.atomic
def create_identity(run, image_ids, name=None, gender=None):
    """New identity from scrape images; links already held by another identity are moved"""
    images = list(FaceScrapeImage.objects.filter(run=run, id__in=image_ids))
    ordered = sorted(images, key=lambda img: image_ids.index(img.id)) if images else []
    identity = FaceIdentity.objects.create(
        run=run,
        name=name or next_model_name(run),
        gender=gender or (ordered[0].gender if ordered else 'unknown'),
        representative_image=ordered[0] if ordered else None,
        image_count=len(ordered),
    )
    previous = set(
        FaceIdentityImage.objects.filter(scrape_image__in=ordered).values_list('identity_id', flat=True)
    )
    for image in ordered:
        FaceIdentityImage.objects.update_or_create(scrape_image=image, defaults={'identity': identity})
    _fix_representatives(previous - {identity.id})
    refresh_counts(previous | {identity.id})
    identity.refresh_from_db()
    return identity


@transaction.atomic
def move_images(identity_image_ids, target):
    """Move identity links into `target`; returns the number moved"""
    links = list(FaceIdentityImage.objects.filter(id__in=identity_image_ids).exclude(identity=target))
    if not links:
        return 0
    sources = {link.identity_id for link in links}
    FaceIdentityImage.objects.filter(id__in=[link.id for link in links]).update(identity=target)
    _fix_representatives(sources)
    if target.representative_image_id is None:
        target.representative_image_id = links[0].scrape_image_id
        target.save(update_fields=['representative_image', 'updated_at'])
    refresh_counts(sources | {target.id})
    return len(links)


def _fix_representatives(identity_ids):
    """Point identities whose representative left them, or is ignored, at their first active image"""
    for identity in FaceIdentity.objects.filter(id__in=identity_ids):
        active = identity.identity_images.filter(is_ignored=False)
        rep_id = identity.representative_image_id
        if rep_id and active.filter(scrape_image_id=rep_id).exists():
            continue
        first = active.order_by('created_at', 'id').first()
        identity.representative_image_id = first.scrape_image_id if first else None
        identity.save(update_fields=['representative_image', 'updated_at'])


@transaction.atomic
def split_identity(source, identity_image_ids, name=None):
    """Move the given images out of `source` into a new identity"""
    links = list(source.identity_images.filter(id__in=identity_image_ids).order_by('created_at', 'id'))
    if not links:
        return None
    new_identity = FaceIdentity.objects.create(
        run=source.run,
        name=name or next_model_name(source.run),
        gender=source.gender,
        representative_image_id=links[0].scrape_image_id,
    )
    FaceIdentityImage.objects.filter(id__in=[link.id for link in links]).update(identity=new_identity)
    _fix_representatives({source.id})
    refresh_counts({source.id, new_identity.id})
    new_identity.refresh_from_db()
    return new_identity


@transaction.atomic
def merge_identities(target, source_ids):
    """Fold every image of the sources into `target` and delete the sources"""
    sources = list(FaceIdentity.objects.filter(run=target.run, id__in=source_ids).exclude(id=target.id))
    if not sources:
        return 0
    moved = FaceIdentityImage.objects.filter(identity__in=sources).update(identity=target)
    FaceIdentity.objects.filter(id__in=[s.id for s in sources]).delete()
    if target.representative_image_id is None:
        _fix_representatives({target.id})
    refresh_counts({target.id})
    return moved


@transaction.atomic
def set_ignored(identity_image_ids, ignored=True):
    links = FaceIdentityImage.objects.filter(id__in=identity_image_ids)
    identity_ids = set(links.values_list('identity_id', flat=True))
    updated = links.update(is_ignored=ignored)
    _fix_representatives(identity_ids)
    refresh_counts(identity_ids)
    return updated


@transaction.atomic
def delete_identities(identities):
    """Delete identities together with the scrape images they hold"""
    identity_ids = [identity.id for identity in identities]
    image_ids = list(
        FaceIdentityImage.objects.filter(identity_id__in=identity_ids).values_list('scrape_image_id', flat=True)
    )
    FaceIdentity.objects.filter(id__in=identity_ids).delete()
    FaceScrapeImage.objects.filter(id__in=image_ids).delete()
    logger.info(f"Deleted {len(identity_ids)} identities and {len(image_ids)} scrape images")
    return len(identity_ids), len(image_ids)


def _stored_name(url):
    media_url = settings.MEDIA_URL
    if not url or not url.startswith(media_url):
        return None
    return url[len(media_url):]


def _read_stored(url):
    name = _stored_name(url)
    if not name or not default_storage.exists(name):
        return None
    with default_storage.open(name, 'rb') as fh:
        return fh.read()


def save_crop(scrape_image, crop_box, aspect_ratio='1:1', is_auto=False, render=True):
    """Upsert the image's crop; renders the cropped file when the source is in storage"""
    previous_name = _stored_name(
        FaceCrop.objects.filter(scrape_image=scrape_image).values_list('cropped_stored_url', flat=True).first()
    )
    if previous_name and default_storage.exists(previous_name):
        default_storage.delete(previous_name)

    cropped_url = ''
    if render:
        data = _read_stored(scrape_image.stored_url)
        if data:
            try:
                png = crop_geometry.render_crop(data, crop_box)
            except OSError as e:
                logger.warning(f"Could not render crop for image {scrape_image.id}: {str(e)}")
            else:
                path = default_storage.save(
                    f"face-crops/{scrape_image.run_id}/{scrape_image.id}.png", ContentFile(png)
                )
                cropped_url = default_storage.url(path)

    face_crop, _ = FaceCrop.objects.update_or_create(
        scrape_image=scrape_image,
        defaults={
            'crop_x': crop_box['x'],
            'crop_y': crop_box['y'],
            'crop_width': crop_box['width'],
            'crop_height': crop_box['height'],
            'aspect_ratio': aspect_ratio,
            'is_auto': is_auto,
            'cropped_stored_url': cropped_url,
        },
    )
    return face_crop
