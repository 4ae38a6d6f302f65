"""DXF URL configuration."""
from django.urls import path

from . import views

app_name = "dxf"

urlpatterns = [
    path(
        "preview/",
        views.DXFPreviewView.as_view(),
        name="dxf_preview",
    ),
    path(
        "parse/",
        views.DXFParseView.as_view(),
        name="dxf_parse",
    ),
    path(
        "api/layers/",
        views.DXFLayersAPIView.as_view(),
        name="dxf_api_layers",
    ),
]
