"""
Pose library lifecycle and curation.

Libraries move draft -> review -> locked. Once locked, none of their poses
may change. Coverage is counted per gender and shot type; a library can only
go to review when every slot has at least `min_poses_per_slot` included poses.
"""
import logging

from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone

from studio.catalog.models import ClayImage, ProductImage
from studio.core.cache_signals import suspend_cache_signals
from studio.core.cache_utils import cached_query, invalidate_coverage_cache, COVERAGE_CACHE_TTL
from .filters import LibraryPoseFilter
from .models import BrandPoseLibrary, LibraryPose, DEFAULT_MIN_POSES_PER_SLOT
from .shot_types import ALL_SHOT_TYPES, GENDERS, SHOT_TYPE_LABELS, normalize_shot_type

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BrandPoseLibrary.STATUS_DRAFT: {BrandPoseLibrary.STATUS_REVIEW},
    BrandPoseLibrary.STATUS_REVIEW: {BrandPoseLibrary.STATUS_LOCKED, BrandPoseLibrary.STATUS_DRAFT},
    BrandPoseLibrary.STATUS_LOCKED: set(),
}


class LibraryLockedError(Exception):
    """Raised when a locked library would be modified"""


class InvalidTransitionError(Exception):
    """Raised for a status change the library lifecycle does not allow"""


def ensure_unlocked(library):
    if library.is_locked:
        raise LibraryLockedError(f"Library v{library.version} is locked and cannot be modified")


def get_default_library(brand):
    """The draft if there is one, otherwise the newest version"""
    libraries = BrandPoseLibrary.objects.filter(brand=brand)
    draft = libraries.filter(status=BrandPoseLibrary.STATUS_DRAFT).order_by('-version').first()
    if draft:
        return draft
    return libraries.order_by('-version').first()


def initialize_library_poses(library):
    """
    Add a pending pose for every clay image of the library's brand.

    Clay images already in the library are left alone. Returns the number of
    poses added.
    """
    existing = set(library.poses.values_list('clay_image_id', flat=True))
    clay_images = (
        ClayImage.objects.filter(product_image__product__brand_id=library.brand_id)
        .select_related('product_image', 'product_image__product')
        .order_by('id')
    )

    new_poses = []
    for clay_image in clay_images:
        if clay_image.id in existing:
            continue
        product_image = clay_image.product_image
        product = product_image.product
        new_poses.append(LibraryPose(
            library=library,
            clay_image=clay_image,
            slot=product_image.slot or '',
            shot_type=normalize_shot_type(product_image.slot),
            gender=product.gender,
            product_type=product.product_type,
            curation_status=LibraryPose.CURATION_PENDING,
        ))

    LibraryPose.objects.bulk_create(new_poses, ignore_conflicts=True)
    invalidate_coverage_cache(library.id)
    logger.info(f"Initialized {len(new_poses)} poses for library {library.id}")
    return len(new_poses)


def create_library(brand, user=None, min_poses_per_slot=None):
    """Create the next library version for a brand and seed it from clay images"""
    with transaction.atomic():
        # Lock the brand row so concurrent creates can't pick the same version
        type(brand).objects.select_for_update().filter(pk=brand.pk).first()
        current = BrandPoseLibrary.objects.filter(brand=brand).aggregate(max_version=Max('version'))['max_version']
        library = BrandPoseLibrary.objects.create(
            brand=brand,
            version=(current or 0) + 1,
            status=BrandPoseLibrary.STATUS_DRAFT,
            config_json={'min_poses_per_slot': min_poses_per_slot or DEFAULT_MIN_POSES_PER_SLOT},
            created_by=user if user and user.is_authenticated else None,
        )
        added = initialize_library_poses(library)
    logger.info(f"Created library v{library.version} for brand {brand.name} with {added} poses")
    return library, added


def _empty_counts():
    return {'total': 0, 'included': 0, 'excluded': 0, 'failed': 0, 'pending': 0}


@cached_query(cache_ttl=COVERAGE_CACHE_TTL, key_prefix="library_coverage")
def get_slot_counts(library_id):
    """Curation counts keyed by "gender:shot_type" for one library"""
    rows = (
        LibraryPose.objects.filter(library_id=library_id, gender__isnull=False, shot_type__isnull=False)
        .values('gender', 'shot_type', 'curation_status')
        .annotate(n=Count('id'))
    )
    counts = {}
    for row in rows:
        key = f"{row['gender']}:{row['shot_type']}"
        slot = counts.setdefault(key, _empty_counts())
        slot['total'] += row['n']
        if row['curation_status'] in slot:
            slot[row['curation_status']] += row['n']
    return counts


def compute_coverage(library):
    """Per gender x shot type counts plus readiness flags"""
    min_required = library.min_poses_per_slot
    counts = get_slot_counts(library.id)

    slots = []
    for gender in GENDERS:
        for shot_type in ALL_SHOT_TYPES:
            slot_counts = counts.get(f"{gender}:{shot_type}", _empty_counts())
            slots.append({
                'gender': gender,
                'shot_type': shot_type,
                'label': SHOT_TYPE_LABELS[shot_type],
                **slot_counts,
                'min_required': min_required,
                'is_ready': slot_counts['included'] >= min_required,
            })

    total_slots = len(slots)
    ready_slots = sum(1 for slot in slots if slot['is_ready'])
    total_included = sum(slot['included'] for slot in slots)
    all_ready = ready_slots == total_slots

    return {
        'library_id': library.id,
        'status': library.status,
        'min_poses_per_slot': min_required,
        'slots': slots,
        'ready_slots': ready_slots,
        'total_slots': total_slots,
        'all_ready': all_ready,
        'total_included': total_included,
        'progress': min(1.0, total_included / float(min_required * total_slots)),
        'can_submit_for_review': all_ready and library.status == BrandPoseLibrary.STATUS_DRAFT,
        'can_lock': library.status == BrandPoseLibrary.STATUS_REVIEW,
    }


def update_library_status(library, new_status, user=None):
    """Advance the library lifecycle, enforcing readiness and locking rules"""
    if new_status not in dict(BrandPoseLibrary.STATUS_CHOICES):
        raise InvalidTransitionError(f"Unknown status '{new_status}'")
    if new_status == library.status:
        return library
    if new_status not in ALLOWED_TRANSITIONS[library.status]:
        raise InvalidTransitionError(f"Cannot move library from {library.status} to {new_status}")

    if new_status == BrandPoseLibrary.STATUS_REVIEW:
        coverage = compute_coverage(library)
        if not coverage['all_ready']:
            raise InvalidTransitionError(
                f"Only {coverage['ready_slots']} of {coverage['total_slots']} slots have "
                f"{coverage['min_poses_per_slot']} included poses"
            )

    library.status = new_status
    update_fields = ['status', 'updated_at']
    if new_status == BrandPoseLibrary.STATUS_LOCKED:
        library.locked_at = timezone.now()
        library.locked_by = user if user and user.is_authenticated else None
        update_fields += ['locked_at', 'locked_by']
    library.save(update_fields=update_fields)
    invalidate_coverage_cache(library.id)
    logger.info(f"Library {library.id} moved to {new_status}")
    return library


def filter_poses(library, shot_type=None, gender=None, curation_status=None):
    """Poses of a library narrowed by the review filters; "all" disables a filter"""
    queryset = library.poses.select_related(
        'clay_image', 'clay_image__product_image', 'clay_image__product_image__product'
    ).order_by('shot_type', 'gender', 'id')
    data = {'shot_type': shot_type or '', 'gender': gender or '', 'status': curation_status or ''}
    return LibraryPoseFilter(data, queryset=queryset).qs


def _library_poses(library, pose_ids):
    ensure_unlocked(library)
    return LibraryPose.objects.filter(library=library, id__in=pose_ids)


def bulk_update_status(library, pose_ids, curation_status, user=None, notes=None):
    if curation_status not in dict(LibraryPose.CURATION_CHOICES):
        raise ValueError(f"Invalid curation status '{curation_status}'")
    updates = {
        'curation_status': curation_status,
        'curated_by': user if user and user.is_authenticated else None,
        'curated_at': timezone.now(),
        'updated_at': timezone.now(),
    }
    if notes is not None:
        updates['curation_notes'] = notes
    updated = _library_poses(library, pose_ids).update(**updates)
    invalidate_coverage_cache(library.id)
    return updated


def bulk_move(library, pose_ids, shot_type):
    """Reassign poses to another shot type; both slot and shot_type follow"""
    if shot_type not in SHOT_TYPE_LABELS:
        raise ValueError(f"Invalid shot type '{shot_type}'")
    updated = _library_poses(library, pose_ids).update(slot=shot_type, shot_type=shot_type, updated_at=timezone.now())
    invalidate_coverage_cache(library.id)
    return updated


def bulk_delete(library, pose_ids):
    with suspend_cache_signals():
        deleted, _ = _library_poses(library, pose_ids).delete()
    invalidate_coverage_cache(library.id)
    return deleted


def bulk_set_crop_target(library, pose_ids, crop_target):
    """Set the crop target on the product images behind the given poses"""
    valid_targets = dict(ProductImage._meta.get_field('crop_target').choices)
    if crop_target is not None and crop_target not in valid_targets:
        raise ValueError(f"Invalid crop target '{crop_target}'")
    product_image_ids = _library_poses(library, pose_ids).values_list('clay_image__product_image_id', flat=True)
    return ProductImage.objects.filter(id__in=list(product_image_ids)).update(crop_target=crop_target)


def library_summary(library):
    """Counts by curation status, for list views"""
    return library.poses.aggregate(
        total=Count('id'),
        included=Count('id', filter=Q(curation_status=LibraryPose.CURATION_INCLUDED)),
        excluded=Count('id', filter=Q(curation_status=LibraryPose.CURATION_EXCLUDED)),
        failed=Count('id', filter=Q(curation_status=LibraryPose.CURATION_FAILED)),
        pending=Count('id', filter=Q(curation_status=LibraryPose.CURATION_PENDING)),
    )
