"""
Django admin and customizations for models of notifications app.
"""

from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "user", "pdr", "type", "is_read", "created_at")
    list_filter = ("type", "is_read", "status")
    list_select_related = ("user", "pdr")
    search_fields = ("user__email", "title")
    readonly_fields = ("read_at", "created_at")
    actions = ["mark_as_read"]

    @admin.action(description="Mark selected notifications as read")
    def mark_as_read(self, request, queryset):
        for notification in queryset.filter(is_read=False):
            notification.mark_read()
