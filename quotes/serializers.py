"""
Quote serializers. Wire names follow the public API (camelCase); model
fields are snake_case.
"""
import re

from django.contrib.auth.base_user import BaseUserManager
from rest_framework import serializers

from .choices import QuoteStatus
from .models import Quote, QuoteItem
from .transitions import enabled_statuses

PHONE_RE = re.compile(r"^\+?[\d\s().-]{7,20}$")


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class QuoteLineInputSerializer(serializers.Serializer):
    productId = serializers.IntegerField(
        source="product_id",
        min_value=1,
        error_messages={"required": "Product ID is required.", "invalid": "Product ID must be an integer."},
    )
    quantity = serializers.IntegerField(
        min_value=1,
        error_messages={"min_value": "Quantity must be at least 1.", "invalid": "Quantity must be a whole number."},
    )


class QuoteCreateSerializer(serializers.Serializer):
    """Intake payload. is_valid() reports every violated field at once."""

    name = serializers.CharField(
        max_length=100,
        error_messages={"blank": "Full name is required.", "max_length": "Name cannot exceed 100 characters."},
    )
    email = serializers.EmailField(
        error_messages={"invalid": "Please provide a valid email."},
    )
    phone = serializers.CharField(
        max_length=30,
        error_messages={"blank": "Phone number is required."},
    )
    projectDetails = serializers.CharField(
        source="project_details",
        max_length=2000,
        error_messages={
            "blank": "Project details are required.",
            "max_length": "Details cannot exceed 2000 characters.",
        },
    )
    products = QuoteLineInputSerializer(many=True, allow_empty=False)

    def validate_email(self, value):
        return BaseUserManager.normalize_email(value.strip())

    def validate_phone(self, value):
        digits = re.sub(r"\D", "", value)
        if not PHONE_RE.match(value) or len(digits) < 7:
            raise serializers.ValidationError("Please provide a valid phone number.")
        return value


class QuoteStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=QuoteStatus.choices,
        error_messages={"invalid_choice": "Invalid status value."},
    )
    adminNotes = serializers.CharField(
        source="admin_notes",
        required=False,
        allow_blank=True,
        max_length=2000,
    )

    def validate_status(self, value):
        if value not in enabled_statuses():
            raise serializers.ValidationError("Invalid status value.")
        return value


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class QuoteItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = QuoteItem
        fields = ["productId", "productName", "quantity"]


class QuoteSerializer(serializers.ModelSerializer):
    projectDetails = serializers.CharField(source="project_details", read_only=True)
    products = QuoteItemSerializer(source="items", many=True, read_only=True)
    adminNotes = serializers.CharField(source="admin_notes", read_only=True)
    emailStatus = serializers.CharField(source="email_status", read_only=True)
    emailError = serializers.CharField(source="email_error", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Quote
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "projectDetails",
            "products",
            "status",
            "adminNotes",
            "emailStatus",
            "emailError",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields
