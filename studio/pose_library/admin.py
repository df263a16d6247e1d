from django.contrib import admin
from .models import BrandPoseLibrary, LibraryPose


@admin.register(BrandPoseLibrary)
class BrandPoseLibraryAdmin(admin.ModelAdmin):
    list_display = ['brand', 'version', 'status', 'locked_at', 'locked_by', 'created_at']
    list_filter = ['status', 'brand']
    search_fields = ['brand__name']
    readonly_fields = ['locked_at', 'locked_by', 'created_at', 'updated_at']


@admin.register(LibraryPose)
class LibraryPoseAdmin(admin.ModelAdmin):
    list_display = ['id', 'library', 'shot_type', 'gender', 'product_type', 'curation_status', 'curated_at']
    list_filter = ['curation_status', 'shot_type', 'gender']
    search_fields = ['library__brand__name']
    raw_id_fields = ['clay_image', 'curated_by']
