"""
Batch import of GeoJSON features into FeatureCollection/Layer/PersistedFeature.

    result = import_geo_features(
        project_file_id, "Gebäude", features,
        source_srid=2056, target_srid=4326, batch_size=100,
    )
    collection_id, layer_id, imported, failed, debug_info = result

Per-feature problems (missing/invalid geometry, failed repair, failed
transformation, failed insert) are recorded in debug_info and never
abort the import. Anything else that fails in the database raises
ImportTransactionError and rolls the whole import back.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from django.db import DatabaseError, transaction
from shapely.geometry import mapping

from apps.core.context import ImportContext
from apps.core.exceptions import ImportTransactionError

from ..conf import import_setting
from ..models import FeatureCollection, Layer, PersistedFeature, ProjectFile
from .crs import WGS84, is_known_srid, transform_shape
from .features import GeoFeature
from .repair import (
    INSERT_FAILED,
    TRANSFORM_FAILED,
    FeatureFailure,
    FeatureRejected,
    PreparedFeature,
    normalize_dimensions,
    prepare_feature,
    to_2d,
    vertical_datum,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportDebugInfo:
    repaired_count: int = 0
    cleaned_count: int = 0
    skipped_count: int = 0
    dimension_fixes: int = 0
    feature_errors: list = field(default_factory=list)
    notices: list = field(default_factory=list)

    def notice(self, level: str, message: str, **details: Any):
        self.notices.append({"level": level, "message": message, "details": details})

    def fail(self, failure: FeatureFailure):
        self.feature_errors.append(failure.to_dict())

    def to_dict(self) -> dict:
        return {
            "repaired_count": self.repaired_count,
            "cleaned_count": self.cleaned_count,
            "skipped_count": self.skipped_count,
            "dimension_fixes": self.dimension_fixes,
            "feature_errors": list(self.feature_errors),
            "notices": list(self.notices),
        }


@dataclass
class ImportResult:
    collection_id: UUID
    layer_id: UUID
    imported_count: int
    failed_count: int
    debug_info: dict

    def __iter__(self):
        return iter((
            self.collection_id,
            self.layer_id,
            self.imported_count,
            self.failed_count,
            self.debug_info,
        ))

    def to_dict(self) -> dict:
        return {
            "collection_id": str(self.collection_id),
            "layer_id": str(self.layer_id),
            "imported_count": self.imported_count,
            "failed_count": self.failed_count,
            "debug_info": self.debug_info,
        }


def _json_safe(value: Any) -> Any:
    """Properties as strict JSON (no NaN/Infinity, no foreign types)."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _as_geojson(feature: Any) -> Any:
    if isinstance(feature, GeoFeature):
        return feature.to_geojson()
    return feature


class GeometryImporter:
    """Runs one import. Not reusable across imports."""

    def __init__(
        self,
        context: Optional[ImportContext] = None,
        batch_size: Optional[int] = None,
    ):
        self.context = context or ImportContext()
        self.batch_size = max(1, int(batch_size or import_setting("BATCH_SIZE")))
        self.debug = ImportDebugInfo()
        self.imported_count = 0
        self.failed_count = 0

    def _reject(self, failure: FeatureFailure):
        self.failed_count += 1
        self.debug.fail(failure)
        self.context.logger.warning(
            "[Feature %s] %s (%s)", failure.feature_index, failure.error, failure.error_state
        )

    def prepare(self, features: Sequence[Any]) -> list[PreparedFeature]:
        prepared = []
        for index, feature in enumerate(features):
            try:
                item = prepare_feature(index, _as_geojson(feature))
            except FeatureRejected as e:
                self._reject(e.failure)
                continue
            if item.cleaned:
                self.debug.cleaned_count += 1
            if item.repaired:
                self.debug.repaired_count += 1
                self.debug.notice("info", "Repaired invalid geometry", feature_index=index)
            prepared.append(item)

        self.debug.dimension_fixes = normalize_dimensions(prepared)
        if self.debug.dimension_fixes:
            self.debug.notice(
                "warning",
                "Mixed 2D/3D input, forced to 3D",
                forced=self.debug.dimension_fixes,
            )
        return prepared

    def build(self, item: PreparedFeature, collection, layer, source_srid, target_srid):
        """PersistedFeature for a prepared feature, or None if transformation failed."""
        try:
            target = transform_shape(item.geometry, source_srid, target_srid)
            wgs84 = to_2d(transform_shape(item.geometry, source_srid, WGS84))
        except ValueError as e:
            self._reject(FeatureFailure(item.index, str(e), TRANSFORM_FAILED))
            return None

        datum = vertical_datum(source_srid)
        base_elevation = None
        height_mode = ""
        if item.original_height is not None and datum == "WGS84":
            base_elevation = item.original_height
            height_mode = "absolute_ellipsoidal"

        return PersistedFeature(
            layer=layer,
            collection=collection,
            feature_index=item.index,
            properties=_json_safe(item.properties),
            original_geometry=mapping(item.geometry),
            original_srid=source_srid,
            geometry=mapping(target),
            srid=target_srid,
            geometry_wgs84=mapping(wgs84),
            original_height=item.original_height,
            base_elevation_ellipsoidal=base_elevation,
            object_height=item.object_height,
            height_mode=height_mode,
            height_source=item.height_source,
            vertical_datum_source=datum,
        )

    def insert_batch(self, objects: list[PersistedFeature]):
        if not objects:
            return
        try:
            with transaction.atomic():
                PersistedFeature.objects.bulk_create(objects)
            self.imported_count += len(objects)
            return
        except DatabaseError as e:
            self.debug.notice(
                "warning",
                "Batch insert failed, retrying feature by feature",
                first_index=objects[0].feature_index,
                error=str(e),
            )

        for obj in objects:
            try:
                with transaction.atomic():
                    obj.save(force_insert=True)
                self.imported_count += 1
            except DatabaseError as e:
                self._reject(FeatureFailure(obj.feature_index, str(e), INSERT_FAILED))

    def run(
        self,
        project_file_id,
        collection_name: str,
        features: Sequence[Any],
        source_srid: int,
        target_srid: Optional[int] = None,
    ) -> ImportResult:
        target_srid = int(target_srid or import_setting("TARGET_SRID"))
        source_srid = int(source_srid)
        log = self.context.logger

        unknown = [srid for srid in (source_srid, target_srid) if not is_known_srid(srid)]
        if unknown:
            raise ImportTransactionError(
                f"Unknown EPSG code: {unknown[0]}",
                {"project_file_id": str(project_file_id), "srid": unknown[0]},
            )

        try:
            with transaction.atomic():
                project_file = ProjectFile.objects.get(pk=project_file_id)
                collection = FeatureCollection.objects.create(
                    project_file=project_file,
                    name=collection_name,
                    source_srid=source_srid,
                    target_srid=target_srid,
                )
                layer = Layer.objects.create(collection=collection, name=collection_name)
                self.debug.notice(
                    "info",
                    "Created collection and layer.",
                    collection_id=str(collection.id),
                    layer_id=str(layer.id),
                )
                log.info(
                    "Importing %d features EPSG:%s -> EPSG:%s in batches of %d",
                    len(features), source_srid, target_srid, self.batch_size,
                )

                prepared = self.prepare(features)
                for start in range(0, len(prepared), self.batch_size):
                    batch = prepared[start:start + self.batch_size]
                    objects = [
                        obj for obj in (
                            self.build(item, collection, layer, source_srid, target_srid)
                            for item in batch
                        )
                        if obj is not None
                    ]
                    self.insert_batch(objects)
                    log.debug("Batch %d: %d features", start // self.batch_size + 1, len(objects))

                self.debug.skipped_count = sum(
                    1 for error in self.debug.feature_errors
                    if error["error_state"] != INSERT_FAILED
                )
                collection.import_debug_info = self.debug.to_dict()
                collection.save(update_fields=["import_debug_info"])
        except ProjectFile.DoesNotExist:
            raise ImportTransactionError(
                f"Project file {project_file_id} does not exist",
                {"project_file_id": str(project_file_id)},
            ) from None
        except DatabaseError as e:
            log.error("Import rolled back: %s", e)
            raise ImportTransactionError(
                f"Import rolled back: {e}",
                {"project_file_id": str(project_file_id), "collection": collection_name},
            ) from e

        log.info(
            "Import finished. Imported: %d, Failed: %d, Repaired: %d, Cleaned: %d",
            self.imported_count,
            self.failed_count,
            self.debug.repaired_count,
            self.debug.cleaned_count,
        )
        return ImportResult(
            collection_id=collection.id,
            layer_id=layer.id,
            imported_count=self.imported_count,
            failed_count=self.failed_count,
            debug_info=self.debug.to_dict(),
        )


def import_geo_features(
    project_file_id,
    collection_name: str,
    features: Iterable[Any],
    source_srid: int,
    target_srid: Optional[int] = None,
    batch_size: Optional[int] = None,
    context: Optional[ImportContext] = None,
) -> ImportResult:
    """Import features; see module docstring for the returned tuple."""
    importer = GeometryImporter(context=context, batch_size=batch_size)
    return importer.run(
        project_file_id,
        collection_name,
        list(features),
        source_srid,
        target_srid,
    )
