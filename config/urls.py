"""
URL configuration for the quote API.
"""
from django.contrib import admin
from django.urls import path, include

from common.views import health_view, index_view

urlpatterns = [
    path("", index_view, name="index"),
    path("health/", health_view, name="health"),
    path("admin/", admin.site.urls),
    path("api/v1/auth/", include("accounts.urls")),
    path("api/v1/products/", include("catalog.urls")),
    path("api/v1/quotes/", include("quotes.urls")),
]
