from django.contrib import admin
from .models import Job, JobInput, JobOutput, JobNote, JobSubmission, SubmissionAsset


class JobInputInline(admin.TabularInline):
    model = JobInput
    extra = 0


class JobNoteInline(admin.TabularInline):
    model = JobNote
    extra = 0
    raw_id_fields = ['author']


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ['id', 'project_name', 'type', 'status', 'priority', 'assigned_user', 'due_date', 'created_at']
    list_filter = ['status', 'type', 'priority']
    search_fields = ['project_name', 'instructions', 'assigned_user__username']
    raw_id_fields = ['assigned_user', 'created_by']
    readonly_fields = ['started_at', 'total_active_ms', 'created_at', 'updated_at']
    inlines = [JobInputInline, JobNoteInline]


@admin.register(JobOutput)
class JobOutputAdmin(admin.ModelAdmin):
    list_display = ['id', 'job', 'label', 'uploaded_by', 'created_at']
    raw_id_fields = ['job', 'uploaded_by']


class SubmissionAssetInline(admin.TabularInline):
    model = SubmissionAsset
    extra = 0
    fk_name = 'submission'
    fields = ['file', 'label', 'sort_index', 'revision_number', 'review_status', 'superseded_by']
    raw_id_fields = ['superseded_by']


@admin.register(JobSubmission)
class JobSubmissionAdmin(admin.ModelAdmin):
    list_display = ['id', 'job', 'version_number', 'status', 'submitted_by', 'submitted_at']
    list_filter = ['status']
    raw_id_fields = ['job', 'submitted_by']
    inlines = [SubmissionAssetInline]
