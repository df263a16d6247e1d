from django.db import models
from django.utils.text import slugify


GENDER_CHOICES = [
    ('women', 'Women'),
    ('men', 'Men'),
]

PRODUCT_TYPE_CHOICES = [
    ('tops', 'Tops'),
    ('trousers', 'Trousers'),
]

CROP_TARGET_CHOICES = [
    ('top', 'Top'),
    ('trousers', 'Trousers'),
]


class Brand(models.Model):
    """Fashion brand whose products feed pose libraries"""
    name = models.CharField(max_length=255, unique=True)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    website_url = models.URLField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:255]
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'brands'
        ordering = ['name']


class Product(models.Model):
    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, related_name='products')
    name = models.CharField(max_length=500)
    sku = models.CharField(max_length=100, blank=True, default='')
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, null=True, blank=True)
    product_type = models.CharField(max_length=20, choices=PRODUCT_TYPE_CHOICES, null=True, blank=True)
    source_url = models.URLField(max_length=1000, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['brand', 'gender'], name='products_brand_gender_idx'),
        ]


class ProductImage(models.Model):
    """A photographed product image; `slot` holds the shot it was taken for"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    slot = models.CharField(max_length=20, blank=True, default='')
    image_url = models.URLField(max_length=1000, blank=True, default='')
    stored_url = models.CharField(max_length=1000, blank=True, default='')
    crop_target = models.CharField(max_length=10, choices=CROP_TARGET_CHOICES, null=True, blank=True)
    sort_index = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name} [{self.slot or '-'}]"

    class Meta:
        db_table = 'product_images'
        ordering = ['product', 'sort_index']


class ClayImage(models.Model):
    """Clay (untextured) render generated from a product image"""
    product_image = models.ForeignKey(ProductImage, on_delete=models.CASCADE, related_name='clay_images')
    stored_url = models.CharField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Clay {self.pk} of {self.product_image_id}"

    class Meta:
        db_table = 'clay_images'
        ordering = ['-created_at']
