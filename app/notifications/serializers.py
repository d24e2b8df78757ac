"""
Serializers for the notifications API.
"""

from rest_framework import serializers

from users.serializers import UserNestedSerializer

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    triggered_by = UserNestedSerializer(read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "pdr",
            "type",
            "title",
            "message",
            "triggered_by",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields
