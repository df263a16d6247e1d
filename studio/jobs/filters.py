import django_filters
from .models import Job


class JobFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Job.STATUS_CHOICES)
    type = django_filters.ChoiceFilter(choices=Job.TYPE_CHOICES)
    assigned_user = django_filters.NumberFilter(field_name='assigned_user_id')
    project_name = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = Job
        fields = ['status', 'type', 'assigned_user', 'project_name']
