import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("CREATED", "Draft"),
    ("SUBMITTED", "Submitted for Review"),
    ("PLAN_LOCKED", "Plan Approved"),
    ("MID_YEAR_SUBMITTED", "Mid-Year Submitted"),
    ("MID_YEAR_APPROVED", "Mid-Year Approved"),
    ("END_YEAR_SUBMITTED", "End-Year Submitted"),
    ("COMPLETED", "Completed"),
]


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("pdrs", "0002_populate_company_values"),
    ]

    operations = [
        migrations.CreateModel(
            name="PDRStatusChange",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "from_status",
                    models.CharField(choices=STATUS_CHOICES, max_length=30),
                ),
                (
                    "to_status",
                    models.CharField(choices=STATUS_CHOICES, max_length=30),
                ),
                ("action", models.CharField(max_length=40)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pdr_status_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "pdr",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_changes",
                        to="pdrs.pdr",
                    ),
                ),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
    ]
