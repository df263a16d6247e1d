# Generated manually for versioned brand pose libraries and their poses

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BrandPoseLibrary',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField(default=1)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('review', 'In Review'), ('locked', 'Locked')], default='draft', max_length=10)),
                ('config_json', models.JSONField(blank=True, default=dict)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('brand', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pose_libraries', to='catalog.brand')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_libraries', to=settings.AUTH_USER_MODEL)),
                ('locked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locked_libraries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'brand_pose_libraries',
                'ordering': ['brand', '-version'],
                'indexes': [models.Index(fields=['status'], name='pose_libraries_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('brand', 'version'), name='unique_brand_library_version')],
            },
        ),
        migrations.CreateModel(
            name='LibraryPose',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slot', models.CharField(blank=True, default='', max_length=20)),
                ('shot_type', models.CharField(blank=True, choices=[('FRONT_FULL', 'Front (Full)'), ('FRONT_CROPPED', 'Front (Cropped)'), ('DETAIL', 'Detail'), ('BACK_FULL', 'Back (Full)')], max_length=20, null=True)),
                ('gender', models.CharField(blank=True, choices=[('women', 'Women'), ('men', 'Men')], max_length=10, null=True)),
                ('product_type', models.CharField(blank=True, choices=[('tops', 'Tops'), ('trousers', 'Trousers')], max_length=20, null=True)),
                ('curation_status', models.CharField(choices=[('pending', 'Pending'), ('included', 'Included'), ('excluded', 'Excluded'), ('failed', 'Failed')], default='pending', max_length=10)),
                ('curation_notes', models.TextField(blank=True, default='')),
                ('curated_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clay_image', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='library_poses', to='catalog.clayimage')),
                ('curated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='curated_poses', to=settings.AUTH_USER_MODEL)),
                ('library', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='poses', to='pose_library.brandposelibrary')),
            ],
            options={
                'db_table': 'library_poses',
                'ordering': ['shot_type', 'gender', 'id'],
                'indexes': [
                    models.Index(fields=['library', 'curation_status'], name='library_poses_status_idx'),
                    models.Index(fields=['shot_type', 'gender'], name='library_poses_slot_idx'),
                ],
                'constraints': [models.UniqueConstraint(fields=('library', 'clay_image'), name='unique_library_clay_image')],
            },
        ),
    ]
