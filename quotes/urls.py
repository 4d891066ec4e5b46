"""URL configuration for quotes app."""
from django.urls import path

from .views import QuoteViewSet

urlpatterns = [
    path(
        "",
        QuoteViewSet.as_view({
            "get": "list",
            "post": "create",
        }),
        name="quote-list",
    ),
    path(
        "<uuid:pk>/",
        QuoteViewSet.as_view({"get": "retrieve"}),
        name="quote-detail",
    ),
    path(
        "<uuid:pk>/status/",
        QuoteViewSet.as_view({"put": "set_status"}),
        name="quote-status",
    ),
]
