"""
Views for the user API.
"""

from rest_framework import generics
from rest_framework.authtoken.views import ObtainAuthToken
from rest_framework.settings import api_settings

from users.serializers import UserNestedSerializer


class CreateTokenView(ObtainAuthToken):
    """Create a new auth token for user."""

    renderer_classes = api_settings.DEFAULT_RENDERER_CLASSES


class ManageUserView(generics.RetrieveAPIView):
    """Retrieve the authenticated user (their role drives the UI)."""

    serializer_class = UserNestedSerializer

    def get_object(self):
        return self.request.user
