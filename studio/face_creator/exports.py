from django.utils import timezone
from django.utils.text import slugify

from .models import FaceIdentity


def _crop_data(scrape_image):
    crop = getattr(scrape_image, 'crop', None)
    if crop is None:
        return None
    return {
        'x': crop.crop_x,
        'y': crop.crop_y,
        'width': crop.crop_width,
        'height': crop.crop_height,
        'aspect_ratio': crop.aspect_ratio,
        'cropped_url': crop.cropped_stored_url or None,
        'is_auto': crop.is_auto,
    }


def build_face_dataset(run):
    """Identities of a run with their kept images, views and crops"""
    identities = (
        FaceIdentity.objects.filter(run=run)
        .select_related('representative_image')
        .prefetch_related('identity_images__scrape_image__crop')
        .order_by('name', 'id')
    )

    total_images = 0
    total_cropped = 0
    identity_entries = []
    for identity in identities:
        images = []
        for link in identity.identity_images.all():
            if link.is_ignored:
                continue
            crop = _crop_data(link.scrape_image)
            total_images += 1
            if crop:
                total_cropped += 1
            images.append({
                'id': link.scrape_image.id,
                'source_url': link.scrape_image.source_url,
                'stored_url': link.scrape_image.stored_url,
                'product_url': link.scrape_image.product_url,
                'view': link.view,
                'crop': crop,
            })
        rep = identity.representative_image
        identity_entries.append({
            'id': identity.id,
            'name': identity.name,
            'gender': identity.gender,
            'representative_url': rep.stored_url or rep.source_url if rep else None,
            'images': images,
        })

    return {
        'exported_at': timezone.now().isoformat(),
        'run': {
            'id': run.id,
            'brand_name': run.brand_name,
            'start_url': run.start_url,
            'created_at': run.created_at.isoformat(),
        },
        'identities': identity_entries,
        'totals': {
            'identities': len(identity_entries),
            'images': total_images,
            'cropped_images': total_cropped,
        },
    }


def dataset_filename(run):
    return f"{slugify(run.brand_name) or 'brand'}-face-dataset.json"
