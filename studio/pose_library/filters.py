import django_filters
from .models import LibraryPose
from .shot_types import ALL_SHOT_TYPES, GENDERS


class LibraryPoseFilter(django_filters.FilterSet):
    """Review filters; each accepts "all" to mean no filtering"""
    shot_type = django_filters.CharFilter(method='filter_exact')
    gender = django_filters.CharFilter(method='filter_exact')
    status = django_filters.CharFilter(method='filter_exact', field_name='curation_status')

    ALLOWED = {
        'shot_type': set(ALL_SHOT_TYPES),
        'gender': set(GENDERS),
        'curation_status': {choice for choice, _ in LibraryPose.CURATION_CHOICES},
    }

    class Meta:
        model = LibraryPose
        fields = ['shot_type', 'gender', 'status']

    def filter_exact(self, queryset, name, value):
        if not value or value == 'all':
            return queryset
        if value not in self.ALLOWED[name]:
            return queryset.none()
        return queryset.filter(**{name: value})
