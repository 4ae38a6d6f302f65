"""
Geo import models: project file, feature collection, layer, feature.

Geometries are stored as GeoJSON in JSONFields: the import repairs and
reprojects with shapely/pyproj, so no spatial database is required.
"""
import uuid

from django.db import models


class ProjectFile(models.Model):
    """Eine hochgeladene Geodaten-Datei."""

    class Status(models.TextChoices):
        UPLOADED = "uploaded", "Hochgeladen"
        PROCESSING = "processing", "Wird verarbeitet"
        IMPORTED = "imported", "Importiert"
        ERROR = "error", "Fehler"

    class Format(models.TextChoices):
        DXF = "dxf", "DXF"
        GEOJSON = "geojson", "GeoJSON"
        SHAPEFILE = "shapefile", "Shapefile"
        KML = "kml", "KML"
        GPX = "gpx", "GPX"
        UNKNOWN = "unknown", "Unbekannt"

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False
    )
    name = models.CharField(
        max_length=255, verbose_name="Dateiname"
    )
    file = models.FileField(
        upload_to="geo_files/%Y/%m/",
        blank=True,
        verbose_name="Datei",
    )
    file_format = models.CharField(
        max_length=20,
        choices=Format.choices,
        default=Format.UNKNOWN,
        verbose_name="Format",
    )
    source_srid = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name="Quell-SRID",
        help_text="Detected or user-selected EPSG code",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.UPLOADED,
        verbose_name="Status",
    )
    error_message = models.TextField(
        blank=True, verbose_name="Fehlermeldung"
    )
    import_metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Import-Metadaten",
        help_text="Statistics, coordinate system guess, warnings",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = "geo"
        ordering = ["-created_at"]
        verbose_name = "Projektdatei"
        verbose_name_plural = "Projektdateien"

    def __str__(self) -> str:
        return self.name


class FeatureCollection(models.Model):
    """Ergebnis eines Imports."""

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False
    )
    project_file = models.ForeignKey(
        ProjectFile,
        on_delete=models.CASCADE,
        related_name="collections",
        verbose_name="Projektdatei",
    )
    name = models.CharField(
        max_length=255, verbose_name="Name"
    )
    source_srid = models.PositiveIntegerField(
        verbose_name="Quell-SRID"
    )
    target_srid = models.PositiveIntegerField(
        default=4326, verbose_name="Ziel-SRID"
    )
    import_debug_info = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Import-Diagnose",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "geo"
        ordering = ["-created_at"]
        verbose_name = "Feature-Sammlung"
        verbose_name_plural = "Feature-Sammlungen"

    def __str__(self) -> str:
        return self.name

    @property
    def feature_count(self) -> int:
        return self.features.count()


class Layer(models.Model):
    """Layer einer Feature-Sammlung."""

    class LayerType(models.TextChoices):
        VECTOR = "vector", "Vektor"
        RASTER = "raster", "Raster"

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False
    )
    collection = models.ForeignKey(
        FeatureCollection,
        on_delete=models.CASCADE,
        related_name="layers",
        verbose_name="Sammlung",
    )
    name = models.CharField(
        max_length=255, verbose_name="Name"
    )
    type = models.CharField(
        max_length=20,
        choices=LayerType.choices,
        default=LayerType.VECTOR,
        verbose_name="Typ",
    )
    properties = models.JSONField(
        default=dict, blank=True, verbose_name="Eigenschaften"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "geo"
        ordering = ["name"]
        verbose_name = "Layer"
        verbose_name_plural = "Layer"

    def __str__(self) -> str:
        return self.name


class PersistedFeature(models.Model):
    """Ein importiertes Geo-Feature."""

    class HeightTransformationStatus(models.TextChoices):
        PENDING = "pending", "Ausstehend"
        COMPLETE = "complete", "Abgeschlossen"
        FAILED = "failed", "Fehlgeschlagen"

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False
    )
    layer = models.ForeignKey(
        Layer,
        on_delete=models.CASCADE,
        related_name="features",
        verbose_name="Layer",
    )
    collection = models.ForeignKey(
        FeatureCollection,
        on_delete=models.CASCADE,
        related_name="features",
        verbose_name="Sammlung",
    )
    feature_index = models.PositiveIntegerField(
        verbose_name="Index in der Quelldatei"
    )
    properties = models.JSONField(
        default=dict, blank=True, verbose_name="Attribute"
    )

    # Geometry in source, target and display systems (GeoJSON)
    original_geometry = models.JSONField(
        verbose_name="Originalgeometrie"
    )
    original_srid = models.PositiveIntegerField(
        verbose_name="Original-SRID"
    )
    geometry = models.JSONField(
        verbose_name="Geometrie (Ziel-SRID)"
    )
    srid = models.PositiveIntegerField(
        verbose_name="Ziel-SRID"
    )
    geometry_wgs84 = models.JSONField(
        verbose_name="Geometrie WGS84 (2D)"
    )

    # Height information
    original_height = models.FloatField(
        null=True, blank=True, verbose_name="Originalhöhe"
    )
    base_elevation_ellipsoidal = models.FloatField(
        null=True, blank=True, verbose_name="Ellipsoidische Basishöhe"
    )
    object_height = models.FloatField(
        null=True, blank=True, verbose_name="Objekthöhe"
    )
    height_mode = models.CharField(
        max_length=50, blank=True, verbose_name="Höhenmodus"
    )
    height_source = models.CharField(
        max_length=100, blank=True, verbose_name="Höhenquelle"
    )
    vertical_datum_source = models.CharField(
        max_length=50, blank=True, verbose_name="Vertikales Datum"
    )
    height_transformation_status = models.CharField(
        max_length=20,
        choices=HeightTransformationStatus.choices,
        default=HeightTransformationStatus.PENDING,
        verbose_name="Status Höhentransformation",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "geo"
        db_table = "geo_features"
        ordering = ["collection", "feature_index"]
        verbose_name = "Geo-Feature"
        verbose_name_plural = "Geo-Features"

    def __str__(self) -> str:
        return f"{self.collection_id} #{self.feature_index}"
