import django_filters
from django.db.models import Q
from .models import User, AuditLog


class UserFilter(django_filters.FilterSet):
    """Search users by name or email, optionally narrowed to one role"""
    search = django_filters.CharFilter(method='filter_search')
    role = django_filters.CharFilter(field_name='groups__name')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = User
        fields = ['search', 'role', 'is_active']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(username__icontains=value) |
            Q(email__icontains=value) |
            Q(display_name__icontains=value) |
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value)
        )


class AuditLogFilter(django_filters.FilterSet):
    action = django_filters.CharFilter()
    model = django_filters.CharFilter(field_name='model_name')
    date_from = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    date_to = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = AuditLog
        fields = ['action', 'model', 'date_from', 'date_to']
