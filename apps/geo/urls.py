"""Geo import URL configuration."""
from django.urls import path

from . import views

app_name = "geo"

urlpatterns = [
    path(
        "preview/",
        views.GeoPreviewView.as_view(),
        name="preview",
    ),
    path(
        "files/",
        views.ProjectFileUploadView.as_view(),
        name="file_upload",
    ),
    path(
        "files/<uuid:pk>/",
        views.ProjectFileStatusView.as_view(),
        name="file_status",
    ),
    path(
        "files/<uuid:pk>/import/",
        views.ProjectFileImportView.as_view(),
        name="file_import",
    ),
    path(
        "import/",
        views.FeatureImportView.as_view(),
        name="feature_import",
    ),
]
