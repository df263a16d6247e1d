from django.conf import settings
from django.db import models

GENDER_CHOICES = [
    ('men', 'Men'),
    ('women', 'Women'),
    ('unknown', 'Unknown'),
]


class FaceScrapeRun(models.Model):
    """One crawl of a brand site collecting model photos"""
    STATUS_PENDING = 'pending'
    STATUS_MAPPING = 'mapping'
    STATUS_RUNNING = 'running'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_MAPPING, 'Mapping'),
        (STATUS_RUNNING, 'Running'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    brand_name = models.CharField(max_length=255)
    start_url = models.URLField(max_length=1000)
    max_products = models.PositiveIntegerField(default=200)
    images_per_product = models.PositiveIntegerField(default=4)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    progress = models.IntegerField(default=0)
    total = models.IntegerField(default=0)
    logs = models.JSONField(default=list, blank=True)
    # Product URLs found while mapping, kept so a resume skips the crawl
    product_urls = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='face_scrape_runs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.brand_name} scrape ({self.status})"

    class Meta:
        db_table = 'face_scrape_runs'
        ordering = ['-created_at']


class FaceScrapeImage(models.Model):
    GENDER_SOURCE_CHOICES = [
        ('url', 'URL'),
        ('ai', 'AI'),
        ('manual', 'Manual'),
        ('unknown', 'Unknown'),
    ]

    run = models.ForeignKey(FaceScrapeRun, on_delete=models.CASCADE, related_name='images')
    source_url = models.CharField(max_length=1000)
    stored_url = models.CharField(max_length=1000, blank=True, default='')
    product_url = models.CharField(max_length=1000, blank=True, default='')
    product_title = models.CharField(max_length=500, blank=True, default='')
    image_index = models.IntegerField(default=0)
    image_hash = models.CharField(max_length=20, blank=True, default='')
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, default='unknown')
    gender_source = models.CharField(max_length=10, choices=GENDER_SOURCE_CHOICES, default='unknown')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.source_url

    class Meta:
        db_table = 'face_scrape_images'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['run', 'gender'], name='face_images_gender_idx'),
            models.Index(fields=['run', 'image_hash'], name='face_images_hash_idx'),
        ]


class FaceIdentity(models.Model):
    """A cluster of scraped images showing the same person"""
    run = models.ForeignKey(FaceScrapeRun, on_delete=models.CASCADE, related_name='identities')
    name = models.CharField(max_length=255)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, default='unknown')
    representative_image = models.ForeignKey(FaceScrapeImage, on_delete=models.SET_NULL, null=True, blank=True,
                                             related_name='represented_identities')
    image_count = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'face_identities'
        ordering = ['name', 'id']


class FaceIdentityImage(models.Model):
    VIEW_CHOICES = [
        ('front', 'Front'),
        ('side', 'Side'),
        ('back', 'Back'),
        ('unknown', 'Unknown'),
    ]
    VIEW_SOURCE_CHOICES = [
        ('auto', 'Auto'),
        ('manual', 'Manual'),
    ]

    identity = models.ForeignKey(FaceIdentity, on_delete=models.CASCADE, related_name='identity_images')
    scrape_image = models.OneToOneField(FaceScrapeImage, on_delete=models.CASCADE, related_name='identity_link')
    view = models.CharField(max_length=10, choices=VIEW_CHOICES, default='unknown')
    view_source = models.CharField(max_length=10, choices=VIEW_SOURCE_CHOICES, default='auto')
    is_ignored = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'face_identity_images'
        ordering = ['created_at', 'id']


class FaceCrop(models.Model):
    """Head-and-shoulders crop of a scraped image, in percent of the image"""
    ASPECT_CHOICES = [
        ('1:1', 'Square'),
        ('4:5', 'Portrait 4:5'),
    ]

    scrape_image = models.OneToOneField(FaceScrapeImage, on_delete=models.CASCADE, related_name='crop')
    crop_x = models.FloatField()
    crop_y = models.FloatField()
    crop_width = models.FloatField()
    crop_height = models.FloatField()
    aspect_ratio = models.CharField(max_length=5, choices=ASPECT_CHOICES, default='1:1')
    cropped_stored_url = models.CharField(max_length=1000, blank=True, default='')
    is_auto = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'face_crops'
