"""Root URL configuration for the geo import service."""
from django.contrib import admin
from django.urls import include, path

from apps.core.healthz import liveness, readiness

urlpatterns = [
    # Health endpoints (no auth)
    path("livez/", liveness, name="health-liveness"),
    path("healthz/", readiness, name="health-readiness"),
    path("health/", liveness, name="health-compat"),

    # Admin
    path("admin/", admin.site.urls),

    # App URLs
    path("dxf/", include("apps.dxf.urls", namespace="dxf")),
    path("geo/", include("apps.geo.urls", namespace="geo")),
]
