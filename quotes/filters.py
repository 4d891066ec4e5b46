import django_filters

from .choices import QuoteSort, QuoteStatus
from .models import Quote


class QuoteFilter(django_filters.FilterSet):
    """?status=pending&sort=oldest"""

    status = django_filters.ChoiceFilter(choices=QuoteStatus.choices)
    sort = django_filters.ChoiceFilter(choices=QuoteSort.choices, method="filter_sort")

    class Meta:
        model = Quote
        fields = ["status", "sort"]

    def filter_sort(self, queryset, name, value):
        return queryset.sorted_by(value)
