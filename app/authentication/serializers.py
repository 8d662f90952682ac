"""
Serializers for authentication models.

This module provides DRF serializers for:
- UserSummarySerializer: public identity embedded in chat payloads
- UserSerializer: the caller's own account (/api/v1/auth/me/)

Output keys are camelCase to match the chat API.

Security:
    - Passwords are never serialized
    - All fields are read-only; profile editing is out of scope
"""

from rest_framework import serializers

from authentication.models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """
    Public identity of a chat participant.

    Shown to counterparties, so it excludes the email address.
    """

    firstName = serializers.CharField(source="first_name", read_only=True)
    lastName = serializers.CharField(source="last_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "firstName", "lastName", "role"]
        read_only_fields = fields


class UserSerializer(UserSummarySerializer):
    """Serializer for the authenticated user's own account."""

    dateJoined = serializers.DateTimeField(source="date_joined", read_only=True)

    class Meta(UserSummarySerializer.Meta):
        fields = ["id", "email", "firstName", "lastName", "role", "dateJoined"]
        read_only_fields = fields
