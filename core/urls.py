# core/urls.py
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include
from django.views.generic import RedirectView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView


def health(request):
    """Liveness probe, never touches the database or providers."""
    return JsonResponse({"status": "OK", "message": "Bill ledger backend is running"}, status=200)


urlpatterns = [
    path("", RedirectView.as_view(url="/dashboard/", permanent=False)),
    path("health", health, name="health"),
    path("admin/", admin.site.urls),

    # API & docs
    path("api/schema", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("api/", include("bills.urls", namespace="bills")),

    # Dashboard
    path("dashboard/", include("dashboard.urls", namespace="dashboard")),
]
