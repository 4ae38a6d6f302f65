"""
Bounds calculation over arbitrarily nested GeoJSON coordinates.
"""
import logging
from typing import Any, Iterable, Iterator, Optional

from .features import DEFAULT_BOUNDS, BoundingBox, GeoFeature, is_finite_number

logger = logging.getLogger(__name__)


def _is_position(value: Any) -> bool:
    """A coordinate pair or triple of numbers."""
    return (
        isinstance(value, (list, tuple))
        and len(value) in (2, 3)
        and all(
            isinstance(v, (int, float)) and not isinstance(v, bool)
            for v in value
        )
    )


def iter_positions(coordinates: Any) -> Iterator[tuple[float, float]]:
    """Yield finite (x, y) for every position in a nested coordinate array."""
    if _is_position(coordinates):
        x, y = coordinates[0], coordinates[1]
        if is_finite_number(x) and is_finite_number(y):
            yield x, y
        return
    if isinstance(coordinates, (list, tuple)):
        for item in coordinates:
            yield from iter_positions(item)


def geometry_positions(geometry: Optional[dict]) -> Iterator[tuple[float, float]]:
    if not geometry:
        return
    if geometry.get("type") == "GeometryCollection":
        for member in geometry.get("geometries") or ():
            yield from geometry_positions(member)
        return
    yield from iter_positions(geometry.get("coordinates"))


def calculate_bounds(features: Iterable[GeoFeature], visibility=None) -> BoundingBox:
    """
    Bounding box of all features, or only of those visible under
    `visibility`. Returns (-1, -1, 1, 1) when nothing contributes.
    """
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    found = False

    for feature in features:
        if visibility is not None and not visibility.is_visible(feature.layer):
            continue
        for x, y in geometry_positions(feature.geometry):
            found = True
            min_x = min(min_x, x)
            min_y = min(min_y, y)
            max_x = max(max_x, x)
            max_y = max(max_y, y)

    if not found:
        return DEFAULT_BOUNDS
    return BoundingBox(min_x, min_y, max_x, max_y)
