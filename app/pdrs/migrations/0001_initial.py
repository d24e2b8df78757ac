import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def rating():
    return models.PositiveSmallIntegerField(
        blank=True,
        null=True,
        validators=[
            django.core.validators.MinValueValidator(1),
            django.core.validators.MaxValueValidator(5),
        ],
    )


def big_id():
    return models.BigAutoField(
        auto_created=True,
        primary_key=True,
        serialize=False,
        verbose_name="ID",
    )


def pdr_link(related_name, one_to_one=False):
    field = models.OneToOneField if one_to_one else models.ForeignKey
    return field(
        on_delete=django.db.models.deletion.CASCADE,
        related_name=related_name,
        to="pdrs.pdr",
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PDR",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("financial_year", models.CharField(max_length=20)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("CREATED", "Draft"),
                            ("SUBMITTED", "Submitted for Review"),
                            ("PLAN_LOCKED", "Plan Approved"),
                            ("MID_YEAR_SUBMITTED", "Mid-Year Submitted"),
                            ("MID_YEAR_APPROVED", "Mid-Year Approved"),
                            ("END_YEAR_SUBMITTED", "End-Year Submitted"),
                            ("COMPLETED", "Completed"),
                        ],
                        default="CREATED",
                        max_length=30,
                    ),
                ),
                ("ceo_fields", models.JSONField(blank=True, default=dict)),
                ("meeting_booked", models.BooleanField(default=False)),
                (
                    "meeting_booked_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("locked_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="%(class)s_owned",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "locked_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="locked_pdrs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "PDR",
                "verbose_name_plural": "PDRs",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="pdr",
            constraint=models.UniqueConstraint(
                fields=("created_by", "financial_year"),
                name="unique_pdr_per_owner_and_year",
            ),
        ),
        migrations.CreateModel(
            name="Goal",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("title", models.CharField(blank=True, max_length=200)),
                ("description", models.TextField(blank=True)),
                ("target_outcome", models.TextField(blank=True)),
                ("success_criteria", models.TextField(blank=True)),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("HIGH", "High"),
                            ("MEDIUM", "Medium"),
                            ("LOW", "Low"),
                        ],
                        default="MEDIUM",
                        max_length=10,
                    ),
                ),
                (
                    "weighting",
                    models.PositiveSmallIntegerField(
                        default=0,
                        validators=[
                            django.core.validators.MaxValueValidator(100)
                        ],
                    ),
                ),
                ("employee_progress", models.TextField(blank=True)),
                ("employee_rating", rating()),
                ("ceo_comments", models.TextField(blank=True)),
                ("ceo_rating", rating()),
                ("pdr", pdr_link("goals")),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="CompanyValue",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100, unique=True)),
                ("description", models.TextField(blank=True)),
                ("sort_order", models.PositiveSmallIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["sort_order", "name"]},
        ),
        migrations.CreateModel(
            name="Behavior",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "value",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="behaviors",
                        to="pdrs.companyvalue",
                    ),
                ),
                ("description", models.TextField(blank=True)),
                ("examples", models.TextField(blank=True)),
                ("employee_self_assessment", models.TextField(blank=True)),
                ("employee_rating", rating()),
                ("ceo_comments", models.TextField(blank=True)),
                ("ceo_rating", rating()),
                ("pdr", pdr_link("behaviors")),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.AddConstraint(
            model_name="behavior",
            constraint=models.UniqueConstraint(
                fields=("pdr", "value"),
                name="unique_behavior_per_pdr_and_value",
            ),
        ),
        migrations.CreateModel(
            name="MidYearReview",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("progress_summary", models.TextField(blank=True)),
                ("blockers_challenges", models.TextField(blank=True)),
                ("support_needed", models.TextField(blank=True)),
                ("employee_comments", models.TextField(blank=True)),
                ("ceo_feedback", models.TextField(blank=True)),
                ("ceo_rating", rating()),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("pdr", pdr_link("mid_year_review", one_to_one=True)),
            ],
        ),
        migrations.CreateModel(
            name="EndYearReview",
            fields=[
                ("id", big_id()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("achievements_summary", models.TextField(blank=True)),
                ("learnings_growth", models.TextField(blank=True)),
                ("challenges_faced", models.TextField(blank=True)),
                ("next_year_goals", models.TextField(blank=True)),
                ("employee_overall_rating", rating()),
                ("ceo_final_comments", models.TextField(blank=True)),
                ("ceo_overall_rating", rating()),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("pdr", pdr_link("end_year_review", one_to_one=True)),
            ],
        ),
    ]
