"""Public, read-only product catalog."""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .filters import ProductFilter
from .models import Product
from .serializers import ProductSerializer


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET /api/v1/products/ (?category=&search=)
    GET /api/v1/products/category/{category}/
    GET /api/v1/products/{id}/
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = ProductSerializer
    filterset_class = ProductFilter

    def get_queryset(self):
        return Product.objects.filter(is_active=True)

    def list(self, request, *args, **kwargs):
        products = self.filter_queryset(self.get_queryset())
        data = self.get_serializer(products, many=True).data
        return Response({"success": True, "count": len(data), "data": data})

    def retrieve(self, request, *args, **kwargs):
        product = self.get_queryset().filter(pk=kwargs["pk"]).first()
        if product is None:
            return Response(
                {"success": False, "message": "Product not found"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"success": True, "data": self.get_serializer(product).data})

    @action(detail=False, methods=["get"], url_path="category")
    def by_category(self, request, category=None):
        """All active products in one category; 404 when the category is empty."""
        category = (category or "").strip().lower()
        products = self.get_queryset().filter(category=category)
        data = self.get_serializer(products, many=True).data
        if not data:
            return Response(
                {"success": False, "message": f"No products found in category '{category}'"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"success": True, "count": len(data), "data": data})
