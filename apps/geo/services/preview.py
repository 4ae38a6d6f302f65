"""
Preview projection for map rendering.

A projection groups the visible features by geometry category and by
layer and carries the bounds of the visible features only. Projections
are immutable; a visibility change yields a new Visibility value and a
new (or cached) projection, never a mutated one.
"""
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from .bounds import calculate_bounds
from .features import BoundingBox, GeoFeature, feature_collection
from .layers import filter_layers

logger = logging.getLogger(__name__)


class Visibility(ABC):
    """Which layers are shown. Either AllVisible or OnlyLayers."""

    @abstractmethod
    def is_visible(self, layer: str) -> bool:
        pass

    @staticmethod
    def from_layer_list(layers: Optional[Iterable[str]]) -> "Visibility":
        """
        Convert the UI payload: a missing or empty list means every
        layer is visible.
        """
        layers = [name for name in (layers or ()) if name is not None]
        if not layers:
            return ALL_VISIBLE
        return OnlyLayers(frozenset(layers))

    @abstractmethod
    def to_layer_list(self) -> list[str]:
        pass

    def visible_layers(self, all_layers: Iterable[str]) -> frozenset:
        return frozenset(name for name in all_layers if self.is_visible(name))

    def toggle(self, layer: str, all_layers: Iterable[str]) -> "Visibility":
        """New Visibility with `layer` flipped."""
        all_layers = frozenset(all_layers)
        visible = set(self.visible_layers(all_layers))
        if layer in visible:
            visible.discard(layer)
        else:
            visible.add(layer)
        return _normalize(frozenset(visible), all_layers)

    def show(self, layer: str, all_layers: Iterable[str]) -> "Visibility":
        all_layers = frozenset(all_layers)
        return _normalize(self.visible_layers(all_layers) | {layer}, all_layers)

    def hide(self, layer: str, all_layers: Iterable[str]) -> "Visibility":
        all_layers = frozenset(all_layers)
        return _normalize(self.visible_layers(all_layers) - {layer}, all_layers)


@dataclass(frozen=True)
class AllVisible(Visibility):

    def is_visible(self, layer: str) -> bool:
        return True

    def to_layer_list(self) -> list[str]:
        return []


@dataclass(frozen=True)
class OnlyLayers(Visibility):
    """Only the named layers are shown; an empty set shows nothing."""

    layers: frozenset = field(default_factory=frozenset)

    def is_visible(self, layer: str) -> bool:
        return layer in self.layers

    def to_layer_list(self) -> list[str]:
        return sorted(self.layers)


ALL_VISIBLE = AllVisible()


def _normalize(visible: frozenset, all_layers: frozenset) -> Visibility:
    if all_layers and visible >= all_layers:
        return ALL_VISIBLE
    return OnlyLayers(frozenset(visible))


@dataclass(frozen=True)
class CategorizationRules:
    by_geometry: bool = True
    by_layer: bool = True


DEFAULT_RULES = CategorizationRules()

GEOMETRY_CATEGORIES = {
    "Point": "points",
    "MultiPoint": "points",
    "LineString": "lines",
    "MultiLineString": "lines",
    "Polygon": "polygons",
    "MultiPolygon": "polygons",
}


@dataclass(frozen=True)
class PreviewProjection:
    visibility: Visibility
    rules: CategorizationRules
    features: tuple
    points: tuple
    lines: tuple
    polygons: tuple
    other: tuple
    by_layer: Mapping
    bounds: BoundingBox
    layers: tuple
    total_count: int

    @property
    def visible_count(self) -> int:
        return len(self.features)

    def to_dict(self) -> dict:
        return {
            "points": feature_collection(self.points),
            "lines": feature_collection(self.lines),
            "polygons": feature_collection(self.polygons),
            "other": feature_collection(self.other),
            "layers": list(self.layers),
            "layer_counts": {name: len(items) for name, items in self.by_layer.items()},
            "visible_layers": self.visibility.to_layer_list(),
            "all_visible": isinstance(self.visibility, AllVisible),
            "bounds": self.bounds.to_list(),
            "visible_count": self.visible_count,
            "total_count": self.total_count,
        }


def project(
    features: Sequence[GeoFeature],
    visibility: Visibility = ALL_VISIBLE,
    rules: CategorizationRules = DEFAULT_RULES,
) -> PreviewProjection:
    """Pure projection of a feature sequence."""
    visible = tuple(f for f in features if visibility.is_visible(f.layer))

    categories: dict[str, list] = {"points": [], "lines": [], "polygons": [], "other": []}
    if rules.by_geometry:
        for feature in visible:
            categories[GEOMETRY_CATEGORIES.get(feature.geometry_type, "other")].append(feature)

    grouped: dict[str, list] = {}
    if rules.by_layer:
        for feature in visible:
            grouped.setdefault(feature.layer, []).append(feature)

    return PreviewProjection(
        visibility=visibility,
        rules=rules,
        features=visible,
        points=tuple(categories["points"]),
        lines=tuple(categories["lines"]),
        polygons=tuple(categories["polygons"]),
        other=tuple(categories["other"]),
        by_layer=MappingProxyType({name: tuple(items) for name, items in grouped.items()}),
        bounds=calculate_bounds(visible),
        layers=tuple(filter_layers(f.layer for f in features)),
        total_count=len(features),
    )


class PreviewProjector:
    """
    Memoising wrapper around project() for one preview session.

    The cache is keyed on (visibility, rules), holds at most `cache_size`
    projections (least recently used evicted first) and is dropped when a
    different feature sequence is set or invalidate() is called.
    """

    def __init__(self, features: Sequence[GeoFeature] = (), cache_size: int = 32):
        self._source = features
        self._features = tuple(features)
        self.cache_size = cache_size
        self._cache: OrderedDict = OrderedDict()
        self.hits = 0
        self.misses = 0

    @property
    def features(self) -> tuple:
        return self._features

    @property
    def layers(self) -> list[str]:
        return filter_layers(f.layer for f in self._features)

    def set_features(self, features: Sequence[GeoFeature]):
        if features is self._source:
            return
        self._source = features
        self._features = tuple(features)
        self.invalidate()

    def invalidate(self):
        self._cache = OrderedDict()

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def project(
        self,
        visibility: Visibility = ALL_VISIBLE,
        rules: CategorizationRules = DEFAULT_RULES,
    ) -> PreviewProjection:
        key = (visibility, rules)
        cached = self._cache.get(key)
        if cached is not None:
            self.hits += 1
            self._cache.move_to_end(key)
            return cached

        self.misses += 1
        projection = project(self._features, visibility, rules)
        self._cache[key] = projection
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        logger.debug(
            "Projected %d/%d features for %r",
            projection.visible_count,
            projection.total_count,
            visibility,
        )
        return projection
