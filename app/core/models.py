"""
Project-wide abstract base classes.
"""

from django.db import models
from django.conf import settings


class TimestampedModel(models.Model):
    """Abstract data model, provides created_at, updated_at."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class OwnedModel(models.Model):
    """Abstract data model, provides created_by (the record's owner)."""

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="%(class)s_owned",
    )

    class Meta:
        abstract = True

    def is_owned_by(self, user) -> bool:
        """True when the given user created (and therefore owns) this row."""
        if not user or not user.is_authenticated:
            return False
        return self.created_by_id == user.id
