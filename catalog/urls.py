"""URL configuration for the catalog app."""
from django.urls import path

from .views import ProductViewSet

urlpatterns = [
    path(
        "",
        ProductViewSet.as_view({"get": "list"}),
        name="product-list",
    ),
    path(
        "category/<slug:category>/",
        ProductViewSet.as_view({"get": "by_category"}),
        name="product-category",
    ),
    path(
        "<int:pk>/",
        ProductViewSet.as_view({"get": "retrieve"}),
        name="product-detail",
    ),
]
