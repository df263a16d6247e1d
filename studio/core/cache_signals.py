"""
Cache invalidation signals
Automatically invalidate cached aggregates when the rows behind them change
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_coverage_cache, invalidate_review_progress

logger = logging.getLogger(__name__)

_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals.
    Bulk operations use this and invalidate once afterwards.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete], sender='pose_library.LibraryPose')
def invalidate_pose_coverage(sender, instance, **kwargs):
    """Coverage counts change whenever a pose is added, edited or removed"""
    if is_suspended():
        return
    try:
        invalidate_coverage_cache(instance.library_id)
    except Exception as e:
        logger.warning(f"Error in invalidate_pose_coverage signal: {e}")


@receiver([post_save, post_delete], sender='pose_library.BrandPoseLibrary')
def invalidate_library_coverage(sender, instance, **kwargs):
    if is_suspended():
        return
    try:
        invalidate_coverage_cache(instance.id)
    except Exception as e:
        logger.warning(f"Error in invalidate_library_coverage signal: {e}")


@receiver(post_save, sender='catalog.Product')
def invalidate_product_coverage(sender, instance, created, **kwargs):
    """Gender or product type edits move poses between coverage slots"""
    if is_suspended() or created:
        return
    try:
        for library_id in instance.brand.pose_libraries.values_list('id', flat=True):
            invalidate_coverage_cache(library_id)
    except Exception as e:
        logger.warning(f"Error in invalidate_product_coverage signal: {e}")


@receiver(post_save, sender='jobs.SubmissionAsset')
def invalidate_asset_review_progress(sender, instance, **kwargs):
    if is_suspended():
        return
    try:
        invalidate_review_progress(instance.submission.job_id)
    except Exception as e:
        logger.warning(f"Error in invalidate_asset_review_progress signal: {e}")
