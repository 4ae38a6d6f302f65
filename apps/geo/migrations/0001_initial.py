import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProjectFile",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, verbose_name="Dateiname")),
                ("file", models.FileField(blank=True, upload_to="geo_files/%Y/%m/", verbose_name="Datei")),
                ("file_format", models.CharField(choices=[("dxf", "DXF"), ("geojson", "GeoJSON"), ("shapefile", "Shapefile"), ("kml", "KML"), ("gpx", "GPX"), ("unknown", "Unbekannt")], default="unknown", max_length=20, verbose_name="Format")),
                ("source_srid", models.PositiveIntegerField(blank=True, help_text="Detected or user-selected EPSG code", null=True, verbose_name="Quell-SRID")),
                ("status", models.CharField(choices=[("uploaded", "Hochgeladen"), ("processing", "Wird verarbeitet"), ("imported", "Importiert"), ("error", "Fehler")], default="uploaded", max_length=20, verbose_name="Status")),
                ("error_message", models.TextField(blank=True, verbose_name="Fehlermeldung")),
                ("import_metadata", models.JSONField(blank=True, default=dict, help_text="Statistics, coordinate system guess, warnings", verbose_name="Import-Metadaten")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Projektdatei",
                "verbose_name_plural": "Projektdateien",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="FeatureCollection",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("source_srid", models.PositiveIntegerField(verbose_name="Quell-SRID")),
                ("target_srid", models.PositiveIntegerField(default=4326, verbose_name="Ziel-SRID")),
                ("import_debug_info", models.JSONField(blank=True, default=dict, verbose_name="Import-Diagnose")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("project_file", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="collections", to="geo.projectfile", verbose_name="Projektdatei")),
            ],
            options={
                "verbose_name": "Feature-Sammlung",
                "verbose_name_plural": "Feature-Sammlungen",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Layer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("type", models.CharField(choices=[("vector", "Vektor"), ("raster", "Raster")], default="vector", max_length=20, verbose_name="Typ")),
                ("properties", models.JSONField(blank=True, default=dict, verbose_name="Eigenschaften")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="layers", to="geo.featurecollection", verbose_name="Sammlung")),
            ],
            options={
                "verbose_name": "Layer",
                "verbose_name_plural": "Layer",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="PersistedFeature",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("feature_index", models.PositiveIntegerField(verbose_name="Index in der Quelldatei")),
                ("properties", models.JSONField(blank=True, default=dict, verbose_name="Attribute")),
                ("original_geometry", models.JSONField(verbose_name="Originalgeometrie")),
                ("original_srid", models.PositiveIntegerField(verbose_name="Original-SRID")),
                ("geometry", models.JSONField(verbose_name="Geometrie (Ziel-SRID)")),
                ("srid", models.PositiveIntegerField(verbose_name="Ziel-SRID")),
                ("geometry_wgs84", models.JSONField(verbose_name="Geometrie WGS84 (2D)")),
                ("original_height", models.FloatField(blank=True, null=True, verbose_name="Originalhöhe")),
                ("base_elevation_ellipsoidal", models.FloatField(blank=True, null=True, verbose_name="Ellipsoidische Basishöhe")),
                ("object_height", models.FloatField(blank=True, null=True, verbose_name="Objekthöhe")),
                ("height_mode", models.CharField(blank=True, max_length=50, verbose_name="Höhenmodus")),
                ("height_source", models.CharField(blank=True, max_length=100, verbose_name="Höhenquelle")),
                ("vertical_datum_source", models.CharField(blank=True, max_length=50, verbose_name="Vertikales Datum")),
                ("height_transformation_status", models.CharField(choices=[("pending", "Ausstehend"), ("complete", "Abgeschlossen"), ("failed", "Fehlgeschlagen")], default="pending", max_length=20, verbose_name="Status Höhentransformation")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("collection", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="features", to="geo.featurecollection", verbose_name="Sammlung")),
                ("layer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="features", to="geo.layer", verbose_name="Layer")),
            ],
            options={
                "verbose_name": "Geo-Feature",
                "verbose_name_plural": "Geo-Features",
                "db_table": "geo_features",
                "ordering": ["collection", "feature_index"],
            },
        ),
    ]
