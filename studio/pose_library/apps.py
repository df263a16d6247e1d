from django.apps import AppConfig


class PoseLibraryConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'studio.pose_library'
    label = 'pose_library'
