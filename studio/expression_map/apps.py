from django.apps import AppConfig


class ExpressionMapConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'studio.expression_map'
    label = 'expression_map'
    verbose_name = 'Expression Map'
