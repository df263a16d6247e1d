from django.conf import settings
from django.db import models

from studio.catalog.models import GENDER_CHOICES, PRODUCT_TYPE_CHOICES
from .shot_types import SHOT_TYPE_CHOICES

DEFAULT_MIN_POSES_PER_SLOT = 50


class BrandPoseLibrary(models.Model):
    """A versioned, curated set of poses for one brand"""
    STATUS_DRAFT = 'draft'
    STATUS_REVIEW = 'review'
    STATUS_LOCKED = 'locked'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_REVIEW, 'In Review'),
        (STATUS_LOCKED, 'Locked'),
    ]

    brand = models.ForeignKey('catalog.Brand', on_delete=models.CASCADE, related_name='pose_libraries')
    version = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    config_json = models.JSONField(default=dict, blank=True)
    locked_at = models.DateTimeField(null=True, blank=True)
    locked_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='locked_libraries')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_libraries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def min_poses_per_slot(self):
        value = (self.config_json or {}).get('min_poses_per_slot')
        try:
            value = int(value)
        except (TypeError, ValueError):
            return DEFAULT_MIN_POSES_PER_SLOT
        return value if value > 0 else DEFAULT_MIN_POSES_PER_SLOT

    @property
    def is_locked(self):
        return self.status == self.STATUS_LOCKED

    def __str__(self):
        return f"{self.brand.name} v{self.version} ({self.status})"

    class Meta:
        db_table = 'brand_pose_libraries'
        ordering = ['brand', '-version']
        constraints = [
            models.UniqueConstraint(fields=['brand', 'version'], name='unique_brand_library_version'),
        ]
        indexes = [
            models.Index(fields=['status'], name='pose_libraries_status_idx'),
        ]


class LibraryPose(models.Model):
    """A clay image placed into a library with its curation decision"""
    CURATION_PENDING = 'pending'
    CURATION_INCLUDED = 'included'
    CURATION_EXCLUDED = 'excluded'
    CURATION_FAILED = 'failed'
    CURATION_CHOICES = [
        (CURATION_PENDING, 'Pending'),
        (CURATION_INCLUDED, 'Included'),
        (CURATION_EXCLUDED, 'Excluded'),
        (CURATION_FAILED, 'Failed'),
    ]

    library = models.ForeignKey(BrandPoseLibrary, on_delete=models.CASCADE, related_name='poses')
    clay_image = models.ForeignKey('catalog.ClayImage', on_delete=models.CASCADE, related_name='library_poses')
    slot = models.CharField(max_length=20, blank=True, default='')
    shot_type = models.CharField(max_length=20, choices=SHOT_TYPE_CHOICES, null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, null=True, blank=True)
    product_type = models.CharField(max_length=20, choices=PRODUCT_TYPE_CHOICES, null=True, blank=True)
    curation_status = models.CharField(max_length=10, choices=CURATION_CHOICES, default=CURATION_PENDING)
    curation_notes = models.TextField(blank=True, default='')
    curated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='curated_poses')
    curated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Pose {self.pk} ({self.shot_type or self.slot}, {self.curation_status})"

    class Meta:
        db_table = 'library_poses'
        ordering = ['shot_type', 'gender', 'id']
        constraints = [
            models.UniqueConstraint(fields=['library', 'clay_image'], name='unique_library_clay_image'),
        ]
        indexes = [
            models.Index(fields=['library', 'curation_status'], name='library_poses_status_idx'),
            models.Index(fields=['shot_type', 'gender'], name='library_poses_slot_idx'),
        ]
