from django.contrib import admin
from .models import Brand, Product, ProductImage, ClayImage


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    fields = ['slot', 'image_url', 'stored_url', 'crop_target', 'sort_index']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'website_url', 'created_at']
    search_fields = ['name']
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'brand', 'gender', 'product_type', 'created_at']
    list_filter = ['brand', 'gender', 'product_type']
    search_fields = ['name', 'sku']
    inlines = [ProductImageInline]


@admin.register(ClayImage)
class ClayImageAdmin(admin.ModelAdmin):
    list_display = ['id', 'product_image', 'stored_url', 'created_at']
    search_fields = ['product_image__product__name']
