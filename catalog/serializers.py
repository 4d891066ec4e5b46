from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Public product representation."""

    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "category",
            "description",
            "image",
            "price",
            "features",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields
