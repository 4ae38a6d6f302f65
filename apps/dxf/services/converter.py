"""
Entity-to-Geometry Converter

One DxfEntity -> zero or one GeoFeature (GeoJSON geometry).

    LINE                    -> LineString
    LWPOLYLINE / POLYLINE   -> Polygon if closed (>= 3 vertices), else LineString
    CIRCLE                  -> Polygon (CIRCLE_SEGMENTS)
    ARC                     -> LineString (ARC_SEGMENTS)
    ELLIPSE                 -> Polygon if full, else LineString
    SPLINE                  -> LineString through fit points (else control points)
    3DFACE / SOLID          -> Polygon
    POINT / TEXT / MTEXT / INSERT -> Point

Rejected entities produce no feature; the reason is logged and counted
in ConversionStatistics.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from apps.core.context import ImportContext
from apps.core.exceptions import EntityConversionError, MissingAttributeError
from apps.geo.conf import import_setting
from apps.geo.services.features import GeoFeature, is_finite_number

from .parser.models import (
    DXFPoint,
    EntityKind,
    FaceEntity,
    PolylineEntity,
    SolidEntity,
)

logger = logging.getLogger(__name__)

# Issues kept in the statistics; further ones are only counted
MAX_ISSUES = 200

FULL_TURN = 2 * math.pi


@dataclass
class ConversionStatistics:
    """Per-entity-type counters for one conversion run."""
    converted: Counter = field(default_factory=Counter)
    skipped: Counter = field(default_factory=Counter)
    failed: Counter = field(default_factory=Counter)
    unsupported: Counter = field(default_factory=Counter)
    geometry_types: Counter = field(default_factory=Counter)
    issues: list = field(default_factory=list)

    @property
    def total_converted(self) -> int:
        return sum(self.converted.values())

    @property
    def total_rejected(self) -> int:
        return sum(self.skipped.values()) + sum(self.failed.values())

    def record_issue(self, entity, reason: str, category: str):
        if len(self.issues) < MAX_ISSUES:
            self.issues.append({
                "entity_type": entity.dxftype,
                "handle": entity.handle,
                "layer": entity.layer,
                "reason": reason,
                "category": category,
            })

    def to_dict(self) -> dict:
        return {
            "converted": dict(self.converted),
            "skipped": dict(self.skipped),
            "failed": dict(self.failed),
            "unsupported": dict(self.unsupported),
            "geometry_types": dict(self.geometry_types),
            "total_converted": self.total_converted,
            "total_rejected": self.total_rejected,
            "issues": list(self.issues),
        }


# ---------------------------------------------------------------------------
# Coordinate helpers
# ---------------------------------------------------------------------------

def _coords(points: Iterable[DXFPoint]) -> list[list[float]]:
    """GeoJSON positions; 3D for all points if any point carries Z."""
    points = list(points)
    use_z = any(p.z is not None for p in points)
    if use_z:
        return [[p.x, p.y, p.z if p.z is not None else 0.0] for p in points]
    return [[p.x, p.y] for p in points]


def _position(point: DXFPoint) -> list[float]:
    return _coords([point])[0]


def _check_finite(coordinates):
    if isinstance(coordinates, list) and coordinates and not isinstance(coordinates[0], list):
        if not all(is_finite_number(v) for v in coordinates):
            raise EntityConversionError("Non-finite coordinate")
        return
    for item in coordinates:
        _check_finite(item)


def _drop_consecutive_duplicates(coords: list) -> list:
    result = []
    for position in coords:
        if not result or result[-1] != position:
            result.append(position)
    return result


def _path_geometry(coords: list, closed: bool) -> tuple[dict, dict]:
    """Polygon for closed paths with >= 3 distinct vertices, else LineString."""
    coords = _drop_consecutive_duplicates(coords)
    ring_closed = len(coords) > 1 and coords[0] == coords[-1]
    distinct = len(coords) - 1 if ring_closed else len(coords)

    if closed and distinct >= 3:
        ring = coords if ring_closed else coords + [coords[0]]
        return {"type": "Polygon", "coordinates": [ring]}, {}
    if len(coords) >= 2:
        extra = {"degenerate_closed": True} if closed else {}
        return {"type": "LineString", "coordinates": coords}, extra
    raise EntityConversionError(f"Too few vertices ({len(coords)})")


def _arc_points(center: DXFPoint, radius: float, start: float, end: float, segments: int) -> list[DXFPoint]:
    """Points along a circular arc; angles in radians, counter-clockwise."""
    step = (end - start) / segments
    return [
        DXFPoint(
            center.x + radius * math.cos(start + i * step),
            center.y + radius * math.sin(start + i * step),
            center.z,
        )
        for i in range(segments + 1)
    ]


class EntityConverter:
    """
    Converts DxfEntities to GeoFeatures.

    Usage:
        converter = EntityConverter(context)
        features = converter.convert_all(structure.entities)
        print(converter.stats.to_dict())
    """

    def __init__(
        self,
        context: Optional[ImportContext] = None,
        circle_segments: Optional[int] = None,
        arc_segments: Optional[int] = None,
    ):
        self.context = context or ImportContext()
        self.circle_segments = circle_segments or import_setting("CIRCLE_SEGMENTS")
        self.arc_segments = arc_segments or import_setting("ARC_SEGMENTS")
        self.stats = ConversionStatistics()
        self._converters: dict[EntityKind, Callable] = {
            EntityKind.LINE: self._line,
            EntityKind.LWPOLYLINE: self._polyline,
            EntityKind.POLYLINE: self._polyline,
            EntityKind.CIRCLE: self._circle,
            EntityKind.ARC: self._arc,
            EntityKind.ELLIPSE: self._ellipse,
            EntityKind.POINT: self._point,
            EntityKind.TEXT: self._text,
            EntityKind.MTEXT: self._text,
            EntityKind.INSERT: self._insert,
            EntityKind.SPLINE: self._spline,
            EntityKind.FACE3D: self._face,
            EntityKind.SOLID: self._face,
        }

    def convert_all(self, entities: Iterable) -> list[GeoFeature]:
        features = []
        for entity in entities:
            feature = self.convert(entity)
            if feature is not None:
                features.append(feature)

        self.context.logger.info(
            "Converted %d entities, %d rejected, %d unsupported",
            self.stats.total_converted,
            self.stats.total_rejected,
            sum(self.stats.unsupported.values()),
        )
        return features

    def convert(self, entity) -> Optional[GeoFeature]:
        dxftype = entity.dxftype
        converter = self._converters.get(entity.kind)
        if converter is None or (isinstance(entity, PolylineEntity) and entity.is_mesh):
            self.stats.unsupported[dxftype] += 1
            return None

        try:
            if not entity.layer:
                raise MissingAttributeError("Entity has no layer", dxftype, entity.handle)
            geometry, extra = converter(entity)
            _check_finite(geometry["coordinates"])
        except MissingAttributeError as e:
            self._reject(entity, e, self.stats.skipped, "skipped")
            return None
        except EntityConversionError as e:
            self._reject(entity, e, self.stats.failed, "failed")
            return None

        properties = {
            "layer": entity.layer,
            "entity_type": dxftype,
            "handle": entity.handle,
            "color": entity.color,
            "linetype": entity.linetype,
        }
        properties.update(extra)

        self.stats.converted[dxftype] += 1
        self.stats.geometry_types[geometry["type"]] += 1
        return GeoFeature(geometry=geometry, properties=properties, layer=entity.layer)

    def _reject(self, entity, error: EntityConversionError, counter: Counter, category: str):
        counter[entity.dxftype] += 1
        self.stats.record_issue(entity, error.message, category)
        self.context.logger.warning(
            "Entity %s (handle=%s, layer=%s) %s: %s",
            entity.dxftype,
            entity.handle,
            entity.layer,
            category,
            error.message,
        )

    @staticmethod
    def _require(value, what: str, entity):
        if value is None:
            raise MissingAttributeError(f"Missing {what}", entity.dxftype, entity.handle)
        return value

    # -----------------------------------------------------------------------
    # Per-kind converters: entity -> (geometry, extra properties)
    # -----------------------------------------------------------------------

    def _line(self, entity):
        start = self._require(entity.start, "start point", entity)
        end = self._require(entity.end, "end point", entity)
        return {"type": "LineString", "coordinates": _coords([start, end])}, {}

    def _polyline(self, entity):
        if not entity.vertices:
            raise MissingAttributeError("Polyline has no vertices", entity.dxftype, entity.handle)
        return _path_geometry(_coords(entity.vertices), entity.closed)

    def _circle(self, entity):
        center = self._require(entity.center, "center", entity)
        radius = self._require(entity.radius, "radius", entity)
        if radius <= 0:
            raise EntityConversionError(f"Invalid radius {radius}")
        points = _arc_points(center, radius, 0.0, FULL_TURN, self.circle_segments)
        coords = _coords(points[:-1])
        coords.append(coords[0])
        return {"type": "Polygon", "coordinates": [coords]}, {"radius": radius}

    def _arc(self, entity):
        center = self._require(entity.center, "center", entity)
        radius = self._require(entity.radius, "radius", entity)
        if radius <= 0:
            raise EntityConversionError(f"Invalid radius {radius}")
        start = math.radians(entity.start_angle)
        end = math.radians(entity.end_angle)
        if end <= start:
            end += FULL_TURN
        points = _arc_points(center, radius, start, end, self.arc_segments)
        return {"type": "LineString", "coordinates": _coords(points)}, {
            "radius": radius,
            "start_angle": entity.start_angle,
            "end_angle": entity.end_angle,
        }

    def _ellipse(self, entity):
        center = self._require(entity.center, "center", entity)
        major = self._require(entity.major_axis, "major axis", entity)
        ratio = entity.ratio
        if math.hypot(major.x, major.y) == 0:
            raise EntityConversionError("Ellipse major axis has zero length")
        if not ratio or ratio <= 0:
            raise EntityConversionError(f"Invalid ellipse ratio {ratio}")
        start, end = entity.start_param, entity.end_param
        if end <= start:
            end += FULL_TURN
        full = math.isclose(end - start, FULL_TURN, abs_tol=1e-9)
        segments = self.circle_segments if full else self.arc_segments

        minor = (-major.y * ratio, major.x * ratio)
        step = (end - start) / segments
        points = []
        for i in range(segments + 1):
            t = start + i * step
            points.append(DXFPoint(
                center.x + major.x * math.cos(t) + minor[0] * math.sin(t),
                center.y + major.y * math.cos(t) + minor[1] * math.sin(t),
                center.z,
            ))

        coords = _coords(points)
        if full:
            coords[-1] = coords[0]
            return {"type": "Polygon", "coordinates": [coords]}, {"ratio": ratio}
        return {"type": "LineString", "coordinates": coords}, {"ratio": ratio}

    def _point(self, entity):
        location = self._require(entity.location, "location", entity)
        return {"type": "Point", "coordinates": _position(location)}, {}

    def _text(self, entity):
        insert = self._require(entity.insert, "insertion point", entity)
        return {"type": "Point", "coordinates": _position(insert)}, {
            "text": entity.text,
            "text_height": entity.height,
            "rotation": entity.rotation,
        }

    def _insert(self, entity):
        insert = self._require(entity.insert, "insertion point", entity)
        extra = {
            "block_name": entity.name,
            "rotation": entity.rotation,
            "scale_x": entity.scale[0],
            "scale_y": entity.scale[1],
            "scale_z": entity.scale[2],
        }
        for tag, value in entity.attributes.items():
            extra[f"attr_{tag}"] = value
        return {"type": "Point", "coordinates": _position(insert)}, extra

    def _spline(self, entity):
        points = entity.fit_points if len(entity.fit_points) >= 2 else entity.control_points
        if not points:
            raise MissingAttributeError("Spline has no points", entity.dxftype, entity.handle)
        return _path_geometry(_coords(points), entity.closed)

    def _face(self, entity: FaceEntity):
        corners = list(entity.corners)
        if not corners:
            raise MissingAttributeError("Face has no corners", entity.dxftype, entity.handle)
        if isinstance(entity, SolidEntity) and len(corners) == 4:
            # SOLID stores the last two corners swapped
            corners = [corners[0], corners[1], corners[3], corners[2]]
        geometry, _ = _path_geometry(_coords(corners), closed=True)
        if geometry["type"] != "Polygon":
            raise EntityConversionError("Face has fewer than 3 distinct corners")
        return geometry, {}


def convert_entities(entities: Iterable, context: Optional[ImportContext] = None) -> tuple[list[GeoFeature], ConversionStatistics]:
    """Convenience function: features and statistics."""
    converter = EntityConverter(context)
    features = converter.convert_all(entities)
    return features, converter.stats
