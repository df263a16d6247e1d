from django.conf import settings
from django.db import models


def job_output_upload_to(instance, filename):
    return f"jobs/{instance.job_id}/outputs/{filename}"


def submission_asset_upload_to(instance, filename):
    return f"jobs/{instance.submission.job_id}/submissions/{instance.submission.version_number}/{filename}"


class Job(models.Model):
    """A unit of freelancer work"""
    TYPE_PHOTOSHOP_FACE_APPLY = 'PHOTOSHOP_FACE_APPLY'
    TYPE_RETOUCH_FINAL = 'RETOUCH_FINAL'
    TYPE_FOUNDATION_FACE_REPLACE = 'FOUNDATION_FACE_REPLACE'
    TYPE_CHOICES = [
        (TYPE_PHOTOSHOP_FACE_APPLY, 'Photoshop Face Apply'),
        (TYPE_RETOUCH_FINAL, 'Retouch Final'),
        (TYPE_FOUNDATION_FACE_REPLACE, 'Foundation Face Replace'),
    ]

    STATUS_OPEN = 'OPEN'
    STATUS_ASSIGNED = 'ASSIGNED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_NEEDS_CHANGES = 'NEEDS_CHANGES'
    STATUS_APPROVED = 'APPROVED'
    STATUS_CLOSED = 'CLOSED'
    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_NEEDS_CHANGES, 'Needs Changes'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_CLOSED, 'Closed'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    project_name = models.CharField(max_length=255, blank=True, default='')
    type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    assigned_user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name='assigned_jobs')
    due_date = models.DateField(null=True, blank=True)
    instructions = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_jobs')
    started_at = models.DateTimeField(null=True, blank=True)
    total_active_ms = models.BigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_type_display()} #{self.pk}"

    class Meta:
        db_table = 'jobs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'assigned_user'], name='jobs_status_assignee_idx'),
            models.Index(fields=['type'], name='jobs_type_idx'),
        ]


class JobInput(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='inputs')
    label = models.CharField(max_length=255, blank=True, default='')
    file_url = models.CharField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'job_inputs'
        ordering = ['created_at', 'id']


class JobOutput(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='outputs')
    file = models.FileField(upload_to=job_output_upload_to)
    label = models.CharField(max_length=255, blank=True, default='')
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='job_outputs')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'job_outputs'
        ordering = ['created_at', 'id']


class JobNote(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='notes')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='job_notes')
    body = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'job_notes'
        ordering = ['created_at', 'id']


class JobSubmission(models.Model):
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_IN_REVIEW = 'IN_REVIEW'
    STATUS_CHANGES_REQUESTED = 'CHANGES_REQUESTED'
    STATUS_APPROVED = 'APPROVED'
    STATUS_CHOICES = [
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_IN_REVIEW, 'In Review'),
        (STATUS_CHANGES_REQUESTED, 'Changes Requested'),
        (STATUS_APPROVED, 'Approved'),
    ]

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='submissions')
    version_number = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SUBMITTED)
    submitted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='job_submissions')
    summary_notes = models.TextField(blank=True, default='')
    submitted_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Job #{self.job_id} v{self.version_number}"

    class Meta:
        db_table = 'job_submissions'
        ordering = ['-version_number']
        constraints = [
            models.UniqueConstraint(fields=['job', 'version_number'], name='unique_job_submission_version'),
        ]


class SubmissionAsset(models.Model):
    REVIEW_PENDING = 'pending'
    REVIEW_APPROVED = 'APPROVED'
    REVIEW_CHANGES_REQUESTED = 'CHANGES_REQUESTED'
    REVIEW_CHOICES = [
        (REVIEW_PENDING, 'Pending'),
        (REVIEW_APPROVED, 'Approved'),
        (REVIEW_CHANGES_REQUESTED, 'Changes Requested'),
    ]

    submission = models.ForeignKey(JobSubmission, on_delete=models.CASCADE, related_name='assets')
    file = models.FileField(upload_to=submission_asset_upload_to)
    label = models.CharField(max_length=255, blank=True, default='')
    sort_index = models.IntegerField(default=0)
    revision_number = models.PositiveIntegerField(default=1)
    superseded_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name='supersedes')
    review_status = models.CharField(max_length=20, choices=REVIEW_CHOICES, default=REVIEW_PENDING)
    review_notes = models.TextField(blank=True, default='')
    reviewed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='reviewed_assets')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def group_key(self):
        return self.label or f"slot-{self.sort_index}"

    class Meta:
        db_table = 'submission_assets'
        ordering = ['sort_index', 'revision_number']
        indexes = [
            models.Index(fields=['submission', 'superseded_by'], name='assets_current_idx'),
        ]
