"""
Filters for the pdrs API.
"""

import django_filters

from .models import PDR
from .workflows import (
    InvalidStatusError,
    PDRStatus,
    is_submitted_status,
    parse_status,
)


class PDRFilter(django_filters.FilterSet):
    # accepts legacy status names too, e.g. ?status=LOCKED
    status = django_filters.CharFilter(method="filter_by_status")
    financial_year = django_filters.CharFilter(field_name="financial_year")
    owner = django_filters.CharFilter(method="filter_by_owner")
    meeting_booked = django_filters.BooleanFilter()
    awaiting_review = django_filters.BooleanFilter(
        method="filter_awaiting_review"
    )

    ordering = django_filters.OrderingFilter(
        fields=(
            ("created_at", "created_at"),
            ("financial_year", "financial_year"),
        )
    )

    class Meta:
        model = PDR
        fields = [
            "status",
            "financial_year",
            "owner",
            "meeting_booked",
            "awaiting_review",
        ]

    def filter_by_status(self, queryset, name, value):
        try:
            status = parse_status(value)
        except InvalidStatusError:
            return queryset.none()
        return queryset.filter(status=status.value)

    def filter_by_owner(self, queryset, name, value):
        if value == "me":
            return queryset.filter(created_by=self.request.user)
        if not value.isdigit():
            return queryset.none()
        return queryset.filter(created_by_id=value)

    def filter_awaiting_review(self, queryset, name, value):
        statuses = [s.value for s in PDRStatus if is_submitted_status(s)]
        if value:
            return queryset.filter(status__in=statuses)
        return queryset.exclude(status__in=statuses)
