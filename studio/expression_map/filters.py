import django_filters
from .models import Output


class OutputFilter(django_filters.FilterSet):
    model = django_filters.NumberFilter(field_name='digital_model_id')
    recipe = django_filters.NumberFilter(field_name='recipe_id')
    status = django_filters.ChoiceFilter(choices=Output.STATUS_CHOICES)

    class Meta:
        model = Output
        fields = ['model', 'recipe', 'status']
