from django.conf import settings
from django.db import models


def brand_ref_upload_to(instance, filename):
    return f"projects/{instance.project_id}/brand-refs/{filename}"


def model_ref_upload_to(instance, filename):
    return f"projects/{instance.digital_model.project_id}/models/{instance.digital_model_id}/{filename}"


class Project(models.Model):
    """An expression-map workspace: references, recipes, talent and outputs"""
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    master_prompt = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='expression_projects')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'expression_projects'
        ordering = ['-created_at']


class BrandRef(models.Model):
    """Brand reference photo that recipes are extracted from"""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='brand_refs')
    file = models.ImageField(upload_to=brand_ref_upload_to, blank=True)
    image_url = models.CharField(max_length=1000, blank=True, default='')
    file_name = models.CharField(max_length=255, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.file_name or self.image_url

    class Meta:
        db_table = 'expression_brand_refs'
        ordering = ['created_at']


class ExpressionRecipe(models.Model):
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='recipes')
    name = models.CharField(max_length=255, default='Unnamed Expression')
    recipe_json = models.JSONField(default=dict, blank=True)
    delta_line = models.TextField(blank=True, null=True)
    full_prompt_text = models.TextField(blank=True, default='')
    source_image_url = models.CharField(max_length=1000, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'expression_recipes'
        ordering = ['created_at', 'id']


class DigitalModel(models.Model):
    """A digital talent identity that outputs are generated for"""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='digital_models')
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'digital_models'
        ordering = ['created_at', 'id']


class DigitalModelRef(models.Model):
    digital_model = models.ForeignKey(DigitalModel, on_delete=models.CASCADE, related_name='refs')
    file = models.ImageField(upload_to=model_ref_upload_to, blank=True)
    image_url = models.CharField(max_length=1000, blank=True, default='')
    file_name = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'digital_model_refs'
        ordering = ['created_at', 'id']


class GenerationJob(models.Model):
    """Background extraction or generation run with a rolling log"""
    TYPE_EXTRACTION = 'extraction'
    TYPE_GENERATION = 'generation'
    TYPE_CHOICES = [
        (TYPE_EXTRACTION, 'Recipe Extraction'),
        (TYPE_GENERATION, 'Image Generation'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_RUNNING = 'running'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_STOPPED = 'stopped'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_RUNNING, 'Running'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_STOPPED, 'Stopped'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='jobs')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    progress = models.IntegerField(default=0)
    total = models.IntegerField(default=0)
    logs = models.JSONField(default=list, blank=True)
    result = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='generation_jobs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.type} job {self.pk} ({self.status})"

    class Meta:
        db_table = 'expression_jobs'
        ordering = ['-created_at']


class Output(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_GENERATING = 'generating'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_GENERATING, 'Generating'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='outputs')
    digital_model = models.ForeignKey(DigitalModel, on_delete=models.CASCADE, related_name='outputs')
    recipe = models.ForeignKey(ExpressionRecipe, on_delete=models.CASCADE, related_name='outputs')
    job = models.ForeignKey(GenerationJob, on_delete=models.SET_NULL, null=True, blank=True, related_name='outputs')
    image_path = models.CharField(max_length=1000, blank=True, default='')
    image_url = models.CharField(max_length=1000, blank=True, null=True)
    prompt_used = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    metrics_json = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'expression_outputs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['project', 'digital_model', 'recipe'], name='outputs_combo_idx'),
        ]
