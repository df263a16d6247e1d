from django.contrib import admin
from .models import Project, BrandRef, ExpressionRecipe, DigitalModel, DigitalModelRef, GenerationJob, Output


class BrandRefInline(admin.TabularInline):
    model = BrandRef
    extra = 0
    fields = ['file', 'image_url', 'file_name']


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_by', 'created_at', 'updated_at']
    search_fields = ['name', 'description']
    inlines = [BrandRefInline]


@admin.register(ExpressionRecipe)
class ExpressionRecipeAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'delta_line', 'created_at']
    list_filter = ['project']
    search_fields = ['name', 'delta_line']


class DigitalModelRefInline(admin.TabularInline):
    model = DigitalModelRef
    extra = 0


@admin.register(DigitalModel)
class DigitalModelAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'created_at']
    list_filter = ['project']
    inlines = [DigitalModelRefInline]


@admin.register(GenerationJob)
class GenerationJobAdmin(admin.ModelAdmin):
    list_display = ['id', 'project', 'type', 'status', 'progress', 'total', 'created_at']
    list_filter = ['type', 'status']
    readonly_fields = ['logs', 'result', 'created_at', 'updated_at']


@admin.register(Output)
class OutputAdmin(admin.ModelAdmin):
    list_display = ['id', 'project', 'digital_model', 'recipe', 'status', 'created_at']
    list_filter = ['status', 'project']
    raw_id_fields = ['job']
