"""
Geometry preparation for persistence: parse, clean, validate, repair,
normalise dimensions and extract height information.

Pure shapely; no database access. The importer calls prepare_feature()
for each input feature and persists the result.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import shapely
from shapely.errors import GEOSException, ShapelyError
from shapely.geometry import MultiLineString, MultiPoint, MultiPolygon, shape
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity, make_valid

from apps.core.exceptions import GeometryValidityError

logger = logging.getLogger(__name__)

# Error states recorded in debug_info.feature_errors
MISSING_GEOMETRY = "GEO001"
PARSE_FAILED = "GEO002"
REPAIR_FAILED = "GEO003"
TRANSFORM_FAILED = "GEO004"
INSERT_FAILED = "GEO005"

# Attribute names holding an absolute height, in priority order
HEIGHT_ATTRIBUTES = ("H_MEAN", "HOEHE", "Z_Value", "Altitude", "height", "HEIGHT")
OBJECT_HEIGHT_ATTRIBUTES = ("object_height", "obj_height", "OBJ_HOEHE", "height", "HEIGHT")

_MULTI_BY_DIMENSION = {0: MultiPoint, 1: MultiLineString, 2: MultiPolygon}


@dataclass
class PreparedFeature:
    """A validated feature in the source system, ready for transformation."""
    index: int
    geometry: BaseGeometry
    properties: dict = field(default_factory=dict)
    repaired: bool = False
    cleaned: bool = False
    original_height: Optional[float] = None
    height_source: str = ""
    object_height: Optional[float] = None


@dataclass
class FeatureFailure:
    feature_index: int
    error: str
    error_state: str
    invalid_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "feature_index": self.feature_index,
            "error": self.error,
            "error_state": self.error_state,
        }
        if self.invalid_reason:
            data["invalid_reason"] = self.invalid_reason
        return data


class FeatureRejected(Exception):
    """Raised by prepare_feature; carries the FeatureFailure."""

    def __init__(self, failure: FeatureFailure):
        self.failure = failure
        super().__init__(failure.error)


def _flatten(geom: BaseGeometry) -> Iterator[BaseGeometry]:
    if hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from _flatten(part)
    elif not geom.is_empty:
        yield geom


def extract_dimension(geom: BaseGeometry, dimension: int) -> Optional[BaseGeometry]:
    """
    Keep only the parts of `geom` with the given topological dimension
    (0 points, 1 lines, 2 polygons). Returns None if nothing is left.
    """
    parts = [p for p in _flatten(geom) if shapely.get_dimensions(p) == dimension]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return _MULTI_BY_DIMENSION[dimension](parts)


def clean_geometry(geom: BaseGeometry) -> tuple[BaseGeometry, bool]:
    """Remove consecutive repeated points; True if anything was removed."""
    cleaned = shapely.remove_repeated_points(geom)
    changed = shapely.get_num_coordinates(cleaned) != shapely.get_num_coordinates(geom)
    return cleaned, changed


def repair_geometry(geom: BaseGeometry) -> tuple[BaseGeometry, bool]:
    """
    Return (geometry, repaired). Invalid geometries go through
    make_valid, then buffer(0); the result keeps only parts of the
    original dimension. Raises GeometryValidityError if neither works.
    """
    if geom.is_valid:
        return geom, False

    reason = explain_validity(geom)
    dimension = int(shapely.get_dimensions(geom))

    for strategy in (make_valid, lambda g: g.buffer(0)):
        try:
            candidate = extract_dimension(strategy(geom), dimension)
        except GEOSException as e:
            logger.debug("Repair strategy failed: %s", e)
            continue
        if candidate is not None and candidate.is_valid:
            return candidate, True

    raise GeometryValidityError(
        f"Geometry is invalid and could not be repaired: {reason}",
        reason=reason,
    )


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def first_z(geom: BaseGeometry) -> Optional[float]:
    """Z of the first vertex (exterior ring for polygons)."""
    if not geom.has_z or geom.is_empty:
        return None
    coords = shapely.get_coordinates(geom, include_z=True)
    if not len(coords):
        return None
    return _to_float(coords[0][2])


def extract_height(geom: BaseGeometry, properties: dict) -> tuple[Optional[float], str]:
    """(height, source): the Z ordinate, else the first height attribute."""
    height = first_z(geom)
    if height is not None:
        return height, "z_coord"
    for name in HEIGHT_ATTRIBUTES:
        height = _to_float(properties.get(name))
        if height is not None:
            return height, f"attribute:{name}"
    return None, ""


def extract_object_height(properties: dict) -> Optional[float]:
    for name in OBJECT_HEIGHT_ATTRIBUTES:
        height = _to_float(properties.get(name))
        if height is not None:
            return height
    return None


def vertical_datum(srid: int) -> str:
    if srid == 2056:
        return "LHN95"
    if srid == 4326:
        return "WGS84"
    return f"EPSG:{srid}"


def parse_geometry(geometry: Any) -> BaseGeometry:
    """GeoJSON mapping -> shapely geometry; ValueError if unusable."""
    try:
        geom = shape(geometry)
    except (ShapelyError, ValueError, TypeError, AttributeError, KeyError, IndexError) as e:
        raise ValueError(f"Invalid geometry: {e}") from e
    if geom.is_empty:
        raise ValueError("Geometry is empty")
    return geom


def prepare_feature(index: int, feature: dict) -> PreparedFeature:
    """
    Parse, clean and repair one GeoJSON feature. Raises FeatureRejected
    with GEO001/GEO002/GEO003 on failure.
    """
    geometry = feature.get("geometry") if isinstance(feature, dict) else None
    properties = dict((feature or {}).get("properties") or {}) if isinstance(feature, dict) else {}

    if not geometry:
        raise FeatureRejected(FeatureFailure(index, "Feature has no geometry", MISSING_GEOMETRY))

    try:
        geom = parse_geometry(geometry)
    except ValueError as e:
        raise FeatureRejected(FeatureFailure(index, str(e), PARSE_FAILED)) from e

    try:
        geom, cleaned = clean_geometry(geom)
    except GEOSException as e:
        raise FeatureRejected(
            FeatureFailure(index, f"Geometry collapsed while cleaning: {e}", REPAIR_FAILED,
                           invalid_reason="Too few distinct points")
        ) from e

    try:
        geom, repaired = repair_geometry(geom)
    except GeometryValidityError as e:
        raise FeatureRejected(
            FeatureFailure(index, e.message, e.error_state, invalid_reason=e.reason)
        ) from e

    height, height_source = extract_height(geom, properties)
    return PreparedFeature(
        index=index,
        geometry=geom,
        properties=properties,
        repaired=repaired,
        cleaned=cleaned,
        original_height=height,
        height_source=height_source,
        object_height=extract_object_height(properties),
    )


def normalize_dimensions(prepared: list[PreparedFeature]) -> int:
    """
    Force every geometry to 3D when the set mixes 2D and 3D.
    Returns the number of geometries that were changed.
    """
    with_z = sum(1 for p in prepared if p.geometry.has_z)
    if with_z == 0 or with_z == len(prepared):
        return 0

    fixes = 0
    for item in prepared:
        if not item.geometry.has_z:
            item.geometry = shapely.force_3d(item.geometry, z=0.0)
            fixes += 1
    return fixes


def to_2d(geom: BaseGeometry) -> BaseGeometry:
    return shapely.force_2d(geom) if geom.has_z else geom