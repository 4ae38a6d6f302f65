"""Geo services: features, bounds, layers, crs, preview, repair; importer and loaders are imported directly."""
from .bounds import calculate_bounds
from .crs import CoordinateSystemDetector, CoordinateSystemGuess, Confidence
from .features import BoundingBox, GeoFeature
from .layers import filter_layers
from .preview import ALL_VISIBLE, OnlyLayers, PreviewProjector, Visibility

__all__ = [
    "ALL_VISIBLE",
    "BoundingBox",
    "Confidence",
    "CoordinateSystemDetector",
    "CoordinateSystemGuess",
    "GeoFeature",
    "OnlyLayers",
    "PreviewProjector",
    "Visibility",
    "calculate_bounds",
    "filter_layers",
]
