# Generated manually for expression map projects, recipes, models and generation jobs

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import studio.expression_map.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Project',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('master_prompt', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='expression_projects', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'expression_projects',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BrandRef',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file', models.ImageField(blank=True, upload_to=studio.expression_map.models.brand_ref_upload_to)),
                ('image_url', models.CharField(blank=True, default='', max_length=1000)),
                ('file_name', models.CharField(blank=True, default='', max_length=255)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='brand_refs', to='expression_map.project')),
            ],
            options={
                'db_table': 'expression_brand_refs',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='ExpressionRecipe',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(default='Unnamed Expression', max_length=255)),
                ('recipe_json', models.JSONField(blank=True, default=dict)),
                ('delta_line', models.TextField(blank=True, null=True)),
                ('full_prompt_text', models.TextField(blank=True, default='')),
                ('source_image_url', models.CharField(blank=True, default='', max_length=1000)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipes', to='expression_map.project')),
            ],
            options={
                'db_table': 'expression_recipes',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='DigitalModel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='digital_models', to='expression_map.project')),
            ],
            options={
                'db_table': 'digital_models',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='DigitalModelRef',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file', models.ImageField(blank=True, upload_to=studio.expression_map.models.model_ref_upload_to)),
                ('image_url', models.CharField(blank=True, default='', max_length=1000)),
                ('file_name', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('digital_model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='refs', to='expression_map.digitalmodel')),
            ],
            options={
                'db_table': 'digital_model_refs',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='GenerationJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('extraction', 'Recipe Extraction'), ('generation', 'Image Generation')], max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('running', 'Running'), ('completed', 'Completed'), ('failed', 'Failed'), ('stopped', 'Stopped')], default='pending', max_length=20)),
                ('progress', models.IntegerField(default=0)),
                ('total', models.IntegerField(default=0)),
                ('logs', models.JSONField(blank=True, default=list)),
                ('result', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generation_jobs', to=settings.AUTH_USER_MODEL)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='jobs', to='expression_map.project')),
            ],
            options={
                'db_table': 'expression_jobs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Output',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('image_path', models.CharField(blank=True, default='', max_length=1000)),
                ('image_url', models.CharField(blank=True, max_length=1000, null=True)),
                ('prompt_used', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('generating', 'Generating'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('metrics_json', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('digital_model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outputs', to='expression_map.digitalmodel')),
                ('job', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='outputs', to='expression_map.generationjob')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outputs', to='expression_map.project')),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outputs', to='expression_map.expressionrecipe')),
            ],
            options={
                'db_table': 'expression_outputs',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['project', 'digital_model', 'recipe'], name='outputs_combo_idx')],
            },
        ),
    ]
