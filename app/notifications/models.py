"""
Data models for the notifications app.
In-app notifications raised by PDR workflow events.
"""

from django.db import models
from django.conf import settings
from django.utils import timezone

from .factory import NotificationType


class Notification(models.Model):
    """A single in-app message for one user about one PDR."""

    class Type(models.TextChoices):
        PDR_SUBMITTED = NotificationType.PDR_SUBMITTED.value, "PDR Submitted"
        PDR_LOCKED = NotificationType.PDR_LOCKED.value, "PDR Locked"
        PDR_RETURNED = NotificationType.PDR_RETURNED.value, "PDR Returned"
        MID_YEAR_SUBMITTED = (
            NotificationType.MID_YEAR_SUBMITTED.value,
            "Mid-Year Submitted",
        )
        MID_YEAR_APPROVED = (
            NotificationType.MID_YEAR_APPROVED.value,
            "Mid-Year Approved",
        )
        END_YEAR_SUBMITTED = (
            NotificationType.END_YEAR_SUBMITTED.value,
            "End-Year Submitted",
        )
        PDR_COMPLETED = NotificationType.PDR_COMPLETED.value, "PDR Completed"
        MEETING_BOOKED = (
            NotificationType.MEETING_BOOKED.value,
            "Meeting Booked",
        )
        PDR_REMINDER = NotificationType.PDR_REMINDER.value, "PDR Reminder"

    class Status(models.TextChoices):
        QUEUED = "queued", "Queued"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        CANCELED = "canceled", "Canceled"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    # String path to avoid a circular import with pdrs
    pdr = models.ForeignKey(
        "pdrs.PDR",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    type = models.CharField(max_length=30, choices=Type.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,  # User who caused it might be deleted
        null=True,
        blank=True,
        related_name="triggered_notifications",
    )

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(blank=True, null=True)

    # Delivery state; only in-app delivery exists for now
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.QUEUED
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.type} for {self.user}"

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at"])
