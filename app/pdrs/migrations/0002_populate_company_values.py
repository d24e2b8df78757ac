# Manually created to populate the company values catalog.
# Behaviors reference one of these, so a fresh install needs a default set.

from django.db import migrations

COMPANY_VALUES = [
    (
        "Innovation",
        "We embrace creativity and continuous improvement to drive "
        "forward-thinking solutions.",
    ),
    (
        "Integrity",
        "We act with honesty, transparency, and ethical standards in all "
        "our dealings.",
    ),
    (
        "Collaboration",
        "We work together across teams and departments to achieve common "
        "goals.",
    ),
    (
        "Excellence",
        "We strive for the highest quality and continuous improvement in "
        "everything we do.",
    ),
    (
        "Customer Focus",
        "We put our customers at the center of our decisions and deliver "
        "exceptional value.",
    ),
]


def create_company_values(apps, schema_editor):
    CompanyValue = apps.get_model("pdrs", "CompanyValue")
    for sort_order, (name, description) in enumerate(COMPANY_VALUES, 1):
        CompanyValue.objects.get_or_create(
            name=name,
            defaults={"description": description, "sort_order": sort_order},
        )


def remove_company_values(apps, schema_editor):
    CompanyValue = apps.get_model("pdrs", "CompanyValue")
    CompanyValue.objects.filter(
        name__in=[name for name, _ in COMPANY_VALUES]
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("pdrs", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_company_values, remove_company_values),
    ]
