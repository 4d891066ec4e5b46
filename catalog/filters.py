import django_filters

from .choices import ProductCategory
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """?category=cement&search=premium"""

    category = django_filters.ChoiceFilter(choices=ProductCategory.choices)
    search = django_filters.CharFilter(field_name="name", lookup_expr="icontains")

    class Meta:
        model = Product
        fields = ["category", "search"]
