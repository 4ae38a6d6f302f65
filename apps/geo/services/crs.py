"""
Coordinate system detection and transformation.

Detection runs ordered strategies, first success wins:

    1. user override          -> Confidence.EXACT
    2. header / metadata hint -> Confidence.HEADER (after plausibility check)
    3. point heuristic        -> Confidence.HEURISTIC
    4. nothing matched        -> Confidence.UNKNOWN (no default system)

HEURISTIC and UNKNOWN guesses must be confirmed by the user before an
import proceeds.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from apps.core.context import ImportContext
from apps.core.exceptions import CoordinateSystemUnknown

from .bounds import geometry_positions
from .features import GeoFeature, is_finite_number

logger = logging.getLogger(__name__)

WGS84 = 4326
LV95 = 2056
LV03 = 21781

KNOWN_SYSTEMS = {
    WGS84: "WGS 84",
    LV95: "CH1903+ / LV95",
    LV03: "CH1903 / LV03",
}

# Share of sample points that must fall inside a signature
MATCH_RATIO = 0.9


class Confidence(Enum):
    EXACT = "exact"
    HEADER = "header"
    HEURISTIC = "heuristic"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CoordinateSystemGuess:
    srid: Optional[int]
    confidence: Confidence
    method: str
    details: str = ""

    @classmethod
    def unknown(cls, details: str = "") -> "CoordinateSystemGuess":
        return cls(srid=None, confidence=Confidence.UNKNOWN, method="none", details=details)

    @property
    def name(self) -> str:
        if self.srid is None:
            return ""
        return KNOWN_SYSTEMS.get(self.srid, f"EPSG:{self.srid}")

    @property
    def requires_confirmation(self) -> bool:
        return self.confidence in (Confidence.HEURISTIC, Confidence.UNKNOWN)

    def require_srid(self) -> int:
        """The detected SRID; raises CoordinateSystemUnknown if there is none."""
        if self.srid is None or self.confidence is Confidence.UNKNOWN:
            raise CoordinateSystemUnknown(
                "Coordinate system could not be detected, please select one",
                {"method": self.method, "details": self.details},
            )
        return self.srid

    def to_dict(self) -> dict:
        return {
            "srid": self.srid,
            "name": self.name,
            "confidence": self.confidence.value,
            "method": self.method,
            "details": self.details,
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass(frozen=True)
class Signature:
    """Typical coordinate magnitudes of a system."""
    srid: int
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    fractional: bool = False

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def matches(self, points: Sequence[tuple[float, float]]) -> bool:
        if not points:
            return False
        inside = sum(1 for x, y in points if self.contains(x, y))
        if inside / len(points) < MATCH_RATIO:
            return False
        if self.fractional:
            # all-integer samples are local drawing units, not degrees
            return any(x != int(x) or y != int(y) for x, y in points)
        return True


SIGNATURES = (
    Signature(LV95, 2_000_000, 3_000_000, 1_000_000, 1_400_000),
    Signature(LV03, 400_000, 900_000, 0, 400_000),
    Signature(WGS84, -180, 180, -90, 90, fractional=True),
)
SIGNATURES_BY_SRID = {s.srid: s for s in SIGNATURES}

_EPSG_PATTERN = re.compile(r"EPSG[:\s]*(\d{4,5})", re.IGNORECASE)
_NAME_HINTS = (
    (re.compile(r"LV95|CH1903\+", re.IGNORECASE), LV95),
    (re.compile(r"LV03|CH1903(?!\+)", re.IGNORECASE), LV03),
    (re.compile(r"WGS\s*-?\s*84", re.IGNORECASE), WGS84),
)


def find_srid_hint(text: str) -> Optional[int]:
    """EPSG code mentioned in free text (EPSG:2056, 'LV95', 'WGS84', ...)."""
    if not text:
        return None
    match = _EPSG_PATTERN.search(text)
    if match:
        return int(match.group(1))
    for pattern, srid in _NAME_HINTS:
        if pattern.search(text):
            return srid
    return None


def srid_from_wkt(wkt: str) -> Optional[int]:
    """EPSG code of a .prj WKT string, or None if pyproj cannot identify it."""
    if not wkt or not wkt.strip():
        return None
    try:
        crs = CRS.from_wkt(wkt)
    except CRSError as e:
        logger.warning("Invalid WKT in projection file: %s", e)
        return None
    epsg = crs.to_epsg()
    if epsg is None:
        epsg = find_srid_hint(crs.name)
    return epsg


def sample_points(features: Iterable[GeoFeature], size: int) -> list[tuple[float, float]]:
    points: list[tuple[float, float]] = []
    for feature in features:
        for position in geometry_positions(feature.geometry):
            points.append(position)
            if len(points) >= size:
                return points
    return points


@lru_cache(maxsize=128)
def is_known_srid(srid: int) -> bool:
    """Does the PROJ database know EPSG:<srid>?"""
    try:
        CRS.from_epsg(srid)
    except CRSError:
        return False
    return True


def check_srid(srid: int) -> int:
    """`srid` unchanged; raises CoordinateSystemUnknown for unknown EPSG codes."""
    if not is_known_srid(srid):
        raise CoordinateSystemUnknown(f"Unknown EPSG code: {srid}", {"srid": srid})
    return srid


@lru_cache(maxsize=64)
def _area_bounds(srid: int) -> Optional[tuple[float, float, float, float]]:
    """Area of use of an EPSG system, projected into that system."""
    try:
        crs = CRS.from_epsg(srid)
    except CRSError:
        return None
    area = crs.area_of_use
    if area is None:
        return None
    if crs.is_geographic:
        return area.west, area.south, area.east, area.north
    transformer = get_transformer(WGS84, srid)
    return transformer.transform_bounds(area.west, area.south, area.east, area.north)


def is_plausible(srid: int, points: Sequence[tuple[float, float]]) -> bool:
    """Do the sample coordinates fit the system's typical magnitudes?"""
    if not points:
        return True
    signature = SIGNATURES_BY_SRID.get(srid)
    if signature is not None:
        return signature.matches(points)

    bounds = _area_bounds(srid)
    if bounds is None:
        return False
    min_x, min_y, max_x, max_y = bounds
    area = Signature(srid, min_x, max_x, min_y, max_y)
    return area.matches(points)


class CoordinateSystemDetector:
    """
    Detect the source coordinate system of a feature set.

    Usage:
        detector = CoordinateSystemDetector(context)
        guess = detector.detect(features, hints=header_strings)
        if guess.requires_confirmation:
            ...  # ask the user
    """

    def __init__(self, context: Optional[ImportContext] = None, sample_size: int = 1000):
        self.context = context or ImportContext()
        self.sample_size = sample_size

    def detect(
        self,
        features: Sequence[GeoFeature],
        hints: Iterable[str] = (),
        prj_wkt: Optional[str] = None,
        override: Optional[int] = None,
    ) -> CoordinateSystemGuess:
        if override is not None:
            guess = CoordinateSystemGuess(
                srid=check_srid(int(override)),
                confidence=Confidence.EXACT,
                method="user_override",
                details="Selected by user",
            )
            return self._log(guess)

        points = sample_points(features, self.sample_size)

        guess = self._from_metadata(points, hints, prj_wkt)
        if guess is None:
            guess = self._from_points(points)
        if guess is None:
            guess = CoordinateSystemGuess.unknown(
                f"No header hint and no matching signature for {len(points)} sample points"
            )
        return self._log(guess)

    def _from_metadata(self, points, hints, prj_wkt) -> Optional[CoordinateSystemGuess]:
        candidates: list[tuple[int, str]] = []

        srid = srid_from_wkt(prj_wkt) if prj_wkt else None
        if srid is not None:
            candidates.append((srid, "projection file"))

        for text in hints:
            srid = find_srid_hint(str(text))
            if srid is not None:
                candidates.append((srid, f"hint {str(text)[:60]!r}"))

        for srid, source in candidates:
            if is_plausible(srid, points):
                return CoordinateSystemGuess(
                    srid=srid,
                    confidence=Confidence.HEADER,
                    method="header",
                    details=f"EPSG:{srid} from {source}",
                )
            self.context.warn(
                "Coordinate system hint rejected, coordinates do not match",
                srid=srid,
                source=source,
            )
        return None

    def _from_points(self, points) -> Optional[CoordinateSystemGuess]:
        for signature in SIGNATURES:
            if signature.matches(points):
                return CoordinateSystemGuess(
                    srid=signature.srid,
                    confidence=Confidence.HEURISTIC,
                    method="point_heuristic",
                    details=f"{len(points)} sample points match {KNOWN_SYSTEMS[signature.srid]}",
                )
        return None

    def _log(self, guess: CoordinateSystemGuess) -> CoordinateSystemGuess:
        self.context.logger.info(
            "Coordinate system: %s (%s via %s)",
            guess.name or "unknown",
            guess.confidence.value,
            guess.method,
        )
        return guess


# ---------------------------------------------------------------------------
# Transformation
# ---------------------------------------------------------------------------

@lru_cache(maxsize=32)
def get_transformer(source_srid: int, target_srid: int) -> Transformer:
    return Transformer.from_crs(
        f"EPSG:{source_srid}", f"EPSG:{target_srid}", always_xy=True
    )


def _all_finite(coordinates) -> bool:
    if isinstance(coordinates, (list, tuple)):
        return all(_all_finite(c) for c in coordinates)
    return is_finite_number(coordinates)


def geometry_is_finite(geometry: dict) -> bool:
    if geometry.get("type") == "GeometryCollection":
        return all(geometry_is_finite(g) for g in geometry.get("geometries") or ())
    return _all_finite(geometry.get("coordinates"))


def transform_shape(geom: BaseGeometry, source_srid: int, target_srid: int) -> BaseGeometry:
    """
    Reproject a shapely geometry. Raises ValueError if the result has
    non-finite coordinates (point outside the projection's domain).
    """
    if source_srid == target_srid:
        return geom
    try:
        transformer = get_transformer(source_srid, target_srid)
        result = transform(transformer.transform, geom)
    except ProjError as e:
        raise ValueError(
            f"Transformation EPSG:{source_srid} -> EPSG:{target_srid} failed: {e}"
        ) from e
    if not geometry_is_finite(mapping(result)):
        raise ValueError(
            f"Transformation EPSG:{source_srid} -> EPSG:{target_srid} produced non-finite coordinates"
        )
    return result


def transform_geometry(geometry: dict, source_srid: int, target_srid: int) -> dict:
    """Reproject a GeoJSON geometry; see transform_shape."""
    if source_srid == target_srid:
        return geometry
    return mapping(transform_shape(shape(geometry), source_srid, target_srid))


def reproject_features(
    features: Sequence[GeoFeature],
    source_srid: int,
    target_srid: int,
    context: Optional[ImportContext] = None,
) -> list[GeoFeature]:
    """Reproject features; those that cannot be transformed are dropped with a warning."""
    context = context or ImportContext()
    if source_srid == target_srid:
        return list(features)

    result = []
    for index, feature in enumerate(features):
        try:
            result.append(feature.with_geometry(
                transform_geometry(feature.geometry, source_srid, target_srid)
            ))
        except ValueError as e:
            context.warn("Feature dropped during reprojection", index=index, error=str(e))
    return result
