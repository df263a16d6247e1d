# Generated manually for face scrape runs, identities and crops

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


GENDER_CHOICES = [('men', 'Men'), ('women', 'Women'), ('unknown', 'Unknown')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FaceScrapeRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('brand_name', models.CharField(max_length=255)),
                ('start_url', models.URLField(max_length=1000)),
                ('max_products', models.PositiveIntegerField(default=200)),
                ('images_per_product', models.PositiveIntegerField(default=4)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('mapping', 'Mapping'), ('running', 'Running'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('progress', models.IntegerField(default=0)),
                ('total', models.IntegerField(default=0)),
                ('logs', models.JSONField(blank=True, default=list)),
                ('product_urls', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='face_scrape_runs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'face_scrape_runs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='FaceScrapeImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('source_url', models.CharField(max_length=1000)),
                ('stored_url', models.CharField(blank=True, default='', max_length=1000)),
                ('product_url', models.CharField(blank=True, default='', max_length=1000)),
                ('product_title', models.CharField(blank=True, default='', max_length=500)),
                ('image_index', models.IntegerField(default=0)),
                ('image_hash', models.CharField(blank=True, default='', max_length=20)),
                ('gender', models.CharField(choices=GENDER_CHOICES, default='unknown', max_length=10)),
                ('gender_source', models.CharField(choices=[('url', 'URL'), ('ai', 'AI'), ('manual', 'Manual'), ('unknown', 'Unknown')], default='unknown', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('run', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='images', to='face_creator.facescraperun')),
            ],
            options={
                'db_table': 'face_scrape_images',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['run', 'gender'], name='face_images_gender_idx'),
                    models.Index(fields=['run', 'image_hash'], name='face_images_hash_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FaceIdentity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('gender', models.CharField(choices=GENDER_CHOICES, default='unknown', max_length=10)),
                ('image_count', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('representative_image', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='represented_identities', to='face_creator.facescrapeimage')),
                ('run', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='identities', to='face_creator.facescraperun')),
            ],
            options={
                'db_table': 'face_identities',
                'ordering': ['name', 'id'],
            },
        ),
        migrations.CreateModel(
            name='FaceIdentityImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('view', models.CharField(choices=[('front', 'Front'), ('side', 'Side'), ('back', 'Back'), ('unknown', 'Unknown')], default='unknown', max_length=10)),
                ('view_source', models.CharField(choices=[('auto', 'Auto'), ('manual', 'Manual')], default='auto', max_length=10)),
                ('is_ignored', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('identity', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='identity_images', to='face_creator.faceidentity')),
                ('scrape_image', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='identity_link', to='face_creator.facescrapeimage')),
            ],
            options={
                'db_table': 'face_identity_images',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='FaceCrop',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('crop_x', models.FloatField()),
                ('crop_y', models.FloatField()),
                ('crop_width', models.FloatField()),
                ('crop_height', models.FloatField()),
                ('aspect_ratio', models.CharField(choices=[('1:1', 'Square'), ('4:5', 'Portrait 4:5')], default='1:1', max_length=5)),
                ('cropped_stored_url', models.CharField(blank=True, default='', max_length=1000)),
                ('is_auto', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('scrape_image', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='crop', to='face_creator.facescrapeimage')),
            ],
            options={
                'db_table': 'face_crops',
            },
        ),
    ]
