import django_filters

from modules.products.models import Product


class ProductFilter(django_filters.FilterSet):
    """Catalog filters; ``size`` matches any variant of the product."""

    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    sku = django_filters.CharFilter(field_name="sku", lookup_expr="iexact")
    min_price = django_filters.NumberFilter(field_name="base_price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="base_price", lookup_expr="lte")
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    size = django_filters.CharFilter(method="filter_size")

    class Meta:
        model = Product
        fields = ["name", "sku", "min_price", "max_price", "status", "size"]

    def filter_size(self, queryset, name, value):
        return queryset.filter(variants__size__iexact=value).distinct()
