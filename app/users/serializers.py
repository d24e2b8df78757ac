"""
Serializers for the user API.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers


class UserNestedSerializer(serializers.ModelSerializer):
    """Compact, read-only user representation for nesting in other objects."""

    class Meta:
        model = get_user_model()
        fields = ["id", "email", "full_name", "role"]
        read_only_fields = fields
