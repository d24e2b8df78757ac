"""
Django admin and customizations for models of pdrs app.
"""

from django.contrib import admin

from pdrs.models import (
    PDR,
    Goal,
    Behavior,
    CompanyValue,
    MidYearReview,
    EndYearReview,
    PDRStatusChange,
)


class GoalInline(admin.StackedInline):
    model = Goal
    extra = 0


class BehaviorInline(admin.StackedInline):
    model = Behavior
    extra = 0


class PDRStatusChangeInline(admin.TabularInline):
    """Status history is written by the workflow only."""

    model = PDRStatusChange
    extra = 0
    can_delete = False
    fields = ("created_at", "from_status", "to_status", "action", "actor")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PDR)
class PDRAdmin(admin.ModelAdmin):
    list_display = (
        "financial_year",
        "created_by",
        "status",
        "meeting_booked",
        "submitted_at",
        "completed_at",
    )
    list_filter = ("status", "financial_year", "meeting_booked")
    search_fields = ("created_by__email", "financial_year")
    readonly_fields = ("created_at", "updated_at")
    inlines = [GoalInline, BehaviorInline, PDRStatusChangeInline]


@admin.register(CompanyValue)
class CompanyValueAdmin(admin.ModelAdmin):
    list_display = ("name", "sort_order", "is_active")
    list_editable = ("sort_order", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)


@admin.register(MidYearReview)
class MidYearReviewAdmin(admin.ModelAdmin):
    list_display = ("pdr", "submitted_at", "ceo_rating")
    search_fields = ("pdr__created_by__email",)


@admin.register(EndYearReview)
class EndYearReviewAdmin(admin.ModelAdmin):
    list_display = ("pdr", "submitted_at", "ceo_overall_rating")
    search_fields = ("pdr__created_by__email",)
