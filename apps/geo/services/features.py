"""
GeoFeature and BoundingBox value types.

Geometry is kept as a GeoJSON mapping so it can be handed to shapely
(shape/mapping), serialised to the API and stored in a JSONField
without conversion.
"""
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple

GEOMETRY_TYPES = (
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
)


def _freeze(properties: Mapping) -> Mapping:
    if isinstance(properties, MappingProxyType):
        return properties
    return MappingProxyType(dict(properties))


@dataclass(frozen=True)
class GeoFeature:
    """One converted feature: GeoJSON geometry, flat properties and layer."""

    geometry: dict
    properties: Mapping = field(default_factory=dict)
    layer: str = "0"

    def __post_init__(self):
        object.__setattr__(self, "properties", _freeze(self.properties))

    @property
    def geometry_type(self) -> str:
        return self.geometry.get("type", "")

    def with_geometry(self, geometry: dict) -> "GeoFeature":
        return GeoFeature(geometry=geometry, properties=self.properties, layer=self.layer)

    def to_geojson(self) -> dict:
        properties = dict(self.properties)
        properties.setdefault("layer", self.layer)
        return {
            "type": "Feature",
            "geometry": self.geometry,
            "properties": properties,
        }

    @classmethod
    def from_geojson(cls, feature: dict, default_layer: str = "0") -> "GeoFeature":
        properties = dict(feature.get("properties") or {})
        layer = properties.get("layer") or default_layer
        return cls(geometry=feature.get("geometry"), properties=properties, layer=str(layer))


class BoundingBox(NamedTuple):
    """(min_x, min_y, max_x, max_y)"""

    min_x: float = -1.0
    min_y: float = -1.0
    max_x: float = 1.0
    max_y: float = 1.0

    @property
    def is_default(self) -> bool:
        return self == DEFAULT_BOUNDS

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def to_list(self) -> list[float]:
        return [self.min_x, self.min_y, self.max_x, self.max_y]


DEFAULT_BOUNDS = BoundingBox()


def is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def feature_collection(features) -> dict:
    """GeoJSON FeatureCollection for a feature sequence."""
    return {
        "type": "FeatureCollection",
        "features": [f.to_geojson() for f in features],
    }
