from django.apps import AppConfig


class FaceCreatorConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'studio.face_creator'
    label = 'face_creator'
    verbose_name = 'Face Creator'
