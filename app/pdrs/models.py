"""
Data models for the pdrs app.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimestampedModel, OwnedModel

from .workflows import PDRStatus, STATUS_DISPLAY_NAMES


RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


def rating_field():
    return models.PositiveSmallIntegerField(
        blank=True, null=True, validators=RATING_VALIDATORS
    )


class PDR(TimestampedModel, OwnedModel):
    """
    A Performance Development Review: one employee's plan and reviews for
    a financial year. The owner (created_by) is the reviewed employee.
    """

    class Status(models.TextChoices):
        CREATED = (
            PDRStatus.CREATED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.CREATED],
        )
        SUBMITTED = (
            PDRStatus.SUBMITTED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.SUBMITTED],
        )
        PLAN_LOCKED = (
            PDRStatus.PLAN_LOCKED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.PLAN_LOCKED],
        )
        MID_YEAR_SUBMITTED = (
            PDRStatus.MID_YEAR_SUBMITTED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.MID_YEAR_SUBMITTED],
        )
        MID_YEAR_APPROVED = (
            PDRStatus.MID_YEAR_APPROVED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.MID_YEAR_APPROVED],
        )
        END_YEAR_SUBMITTED = (
            PDRStatus.END_YEAR_SUBMITTED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.END_YEAR_SUBMITTED],
        )
        COMPLETED = (
            PDRStatus.COMPLETED.value,
            STATUS_DISPLAY_NAMES[PDRStatus.COMPLETED],
        )

    financial_year = models.CharField(max_length=20)
    status = models.CharField(
        max_length=30, choices=Status.choices, default=Status.CREATED
    )

    # Free-form CEO notes on the plan as a whole
    ceo_fields = models.JSONField(default=dict, blank=True)

    meeting_booked = models.BooleanField(default=False)
    meeting_booked_at = models.DateTimeField(blank=True, null=True)

    submitted_at = models.DateTimeField(blank=True, null=True)
    locked_at = models.DateTimeField(blank=True, null=True)
    locked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="locked_pdrs",
    )
    completed_at = models.DateTimeField(blank=True, null=True)

    EMPLOYEE_FIELDS = ()
    CEO_FIELDS = ("ceo_fields",)

    class Meta:
        verbose_name = "PDR"
        verbose_name_plural = "PDRs"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["created_by", "financial_year"],
                name="unique_pdr_per_owner_and_year",
            )
        ]

    def __str__(self):
        return f"PDR {self.financial_year} - {self.created_by}"


class Goal(TimestampedModel):
    """A performance goal set by the employee and reviewed by the CEO."""

    class Priority(models.TextChoices):
        HIGH = "HIGH", "High"
        MEDIUM = "MEDIUM", "Medium"
        LOW = "LOW", "Low"

    pdr = models.ForeignKey(
        PDR, on_delete=models.CASCADE, related_name="goals"
    )

    title = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)
    target_outcome = models.TextField(blank=True)
    success_criteria = models.TextField(blank=True)
    priority = models.CharField(
        max_length=10, choices=Priority.choices, default=Priority.MEDIUM
    )
    weighting = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(100)]
    )
    employee_progress = models.TextField(blank=True)
    employee_rating = rating_field()

    ceo_comments = models.TextField(blank=True)
    ceo_rating = rating_field()

    EMPLOYEE_FIELDS = (
        "title",
        "description",
        "target_outcome",
        "success_criteria",
        "priority",
        "weighting",
        "employee_progress",
        "employee_rating",
    )
    CEO_FIELDS = ("ceo_comments", "ceo_rating")

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.title or f"Goal #{self.pk}"


class CompanyValue(TimestampedModel):
    """An entry of the company values catalog that behaviors assess."""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    sort_order = models.PositiveSmallIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self):
        return self.name


class Behavior(TimestampedModel):
    """An assessment of one company value as demonstrated by the employee."""

    pdr = models.ForeignKey(
        PDR, on_delete=models.CASCADE, related_name="behaviors"
    )
    value = models.ForeignKey(
        CompanyValue, on_delete=models.PROTECT, related_name="behaviors"
    )

    description = models.TextField(blank=True)
    examples = models.TextField(blank=True)
    employee_self_assessment = models.TextField(blank=True)
    employee_rating = rating_field()

    ceo_comments = models.TextField(blank=True)
    ceo_rating = rating_field()

    EMPLOYEE_FIELDS = (
        "value",
        "description",
        "examples",
        "employee_self_assessment",
        "employee_rating",
    )
    CEO_FIELDS = ("ceo_comments", "ceo_rating")

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["pdr", "value"],
                name="unique_behavior_per_pdr_and_value",
            )
        ]

    def __str__(self):
        return f"{self.value} (PDR {self.pdr_id})"


class MidYearReview(TimestampedModel):
    pdr = models.OneToOneField(
        PDR, on_delete=models.CASCADE, related_name="mid_year_review"
    )

    progress_summary = models.TextField(blank=True)
    blockers_challenges = models.TextField(blank=True)
    support_needed = models.TextField(blank=True)
    employee_comments = models.TextField(blank=True)

    ceo_feedback = models.TextField(blank=True)
    ceo_rating = rating_field()

    submitted_at = models.DateTimeField(blank=True, null=True)

    EMPLOYEE_FIELDS = (
        "progress_summary",
        "blockers_challenges",
        "support_needed",
        "employee_comments",
    )
    CEO_FIELDS = ("ceo_feedback", "ceo_rating")

    def __str__(self):
        return f"Mid-year review for {self.pdr}"


class EndYearReview(TimestampedModel):
    pdr = models.OneToOneField(
        PDR, on_delete=models.CASCADE, related_name="end_year_review"
    )

    achievements_summary = models.TextField(blank=True)
    learnings_growth = models.TextField(blank=True)
    challenges_faced = models.TextField(blank=True)
    next_year_goals = models.TextField(blank=True)
    employee_overall_rating = rating_field()

    ceo_final_comments = models.TextField(blank=True)
    ceo_overall_rating = rating_field()

    submitted_at = models.DateTimeField(blank=True, null=True)

    EMPLOYEE_FIELDS = (
        "achievements_summary",
        "learnings_growth",
        "challenges_faced",
        "next_year_goals",
        "employee_overall_rating",
    )
    CEO_FIELDS = ("ceo_final_comments", "ceo_overall_rating")

    def __str__(self):
        return f"End-year review for {self.pdr}"


class PDRStatusChange(models.Model):
    """Audit row written for every committed workflow transition."""

    pdr = models.ForeignKey(
        PDR, on_delete=models.CASCADE, related_name="status_changes"
    )
    from_status = models.CharField(max_length=30, choices=PDR.Status.choices)
    to_status = models.CharField(max_length=30, choices=PDR.Status.choices)
    action = models.CharField(max_length=40)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pdr_status_changes",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"PDR {self.pdr_id}: {self.from_status} -> {self.to_status}"
