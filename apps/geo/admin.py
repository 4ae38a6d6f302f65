"""Geo import admin."""
from django.contrib import admin

from .models import FeatureCollection, Layer, PersistedFeature, ProjectFile


@admin.register(ProjectFile)
class ProjectFileAdmin(admin.ModelAdmin):
    list_display = [
        "name", "file_format", "source_srid",
        "status", "collection_count", "created_at",
    ]
    list_filter = ["status", "file_format"]
    search_fields = ["name"]
    readonly_fields = ["id", "created_at", "updated_at", "import_metadata"]

    fieldsets = (
        (None, {"fields": ("name", "file", "file_format", "source_srid", "status")}),
        (
            "Import",
            {
                "fields": ("error_message", "import_metadata"),
            },
        ),
        (
            "Metadaten",
            {
                "fields": ("id", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )

    def collection_count(self, obj):
        return obj.collections.count()

    collection_count.short_description = "Sammlungen"


class LayerInline(admin.TabularInline):
    model = Layer
    extra = 0
    fields = ["name", "type"]


@admin.register(FeatureCollection)
class FeatureCollectionAdmin(admin.ModelAdmin):
    list_display = [
        "name", "project_file", "source_srid",
        "target_srid", "feature_count", "created_at",
    ]
    list_filter = ["source_srid", "target_srid"]
    search_fields = ["name", "project_file__name"]
    readonly_fields = ["id", "created_at", "import_debug_info"]
    inlines = [LayerInline]

    def feature_count(self, obj):
        return obj.features.count()

    feature_count.short_description = "Features"


@admin.register(PersistedFeature)
class PersistedFeatureAdmin(admin.ModelAdmin):
    list_display = [
        "feature_index", "layer", "srid",
        "height_source", "height_transformation_status",
    ]
    list_filter = ["height_transformation_status", "vertical_datum_source", "srid"]
    search_fields = ["layer__name", "collection__name"]
    readonly_fields = ["id", "created_at"]
    raw_id_fields = ["layer", "collection"]
