import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    brand = django_filters.NumberFilter(field_name='brand_id')
    gender = django_filters.ChoiceFilter(choices=Product._meta.get_field('gender').choices)
    product_type = django_filters.ChoiceFilter(choices=Product._meta.get_field('product_type').choices)
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Product
        fields = ['brand', 'gender', 'product_type', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(sku__icontains=value))
