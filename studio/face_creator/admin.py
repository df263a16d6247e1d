from django.contrib import admin
from .models import FaceScrapeRun, FaceScrapeImage, FaceIdentity, FaceIdentityImage, FaceCrop


@admin.register(FaceScrapeRun)
class FaceScrapeRunAdmin(admin.ModelAdmin):
    list_display = ['id', 'brand_name', 'status', 'progress', 'total', 'created_at']
    list_filter = ['status']
    search_fields = ['brand_name', 'start_url']
    readonly_fields = ['logs', 'product_urls', 'created_at', 'updated_at']


@admin.register(FaceScrapeImage)
class FaceScrapeImageAdmin(admin.ModelAdmin):
    list_display = ['id', 'run', 'gender', 'gender_source', 'image_index', 'created_at']
    list_filter = ['gender', 'gender_source']
    search_fields = ['source_url', 'product_url', 'product_title']


class FaceIdentityImageInline(admin.TabularInline):
    model = FaceIdentityImage
    extra = 0
    raw_id_fields = ['scrape_image']


@admin.register(FaceIdentity)
class FaceIdentityAdmin(admin.ModelAdmin):
    list_display = ['name', 'run', 'gender', 'image_count', 'created_at']
    list_filter = ['gender']
    search_fields = ['name']
    raw_id_fields = ['representative_image']
    inlines = [FaceIdentityImageInline]


@admin.register(FaceCrop)
class FaceCropAdmin(admin.ModelAdmin):
    list_display = ['scrape_image', 'aspect_ratio', 'is_auto', 'updated_at']
    list_filter = ['aspect_ratio', 'is_auto']
    raw_id_fields = ['scrape_image']
