"""
DXF Data Models

Typed structures produced by the section parsers (and by the ezdxf
fallback). Entities form a closed set: one frozen dataclass per
EntityKind, plus UnsupportedEntity for everything else.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class EntityKind(Enum):
    """Entity kinds the converter knows about."""
    LINE = "LINE"
    LWPOLYLINE = "LWPOLYLINE"
    POLYLINE = "POLYLINE"
    CIRCLE = "CIRCLE"
    ARC = "ARC"
    ELLIPSE = "ELLIPSE"
    POINT = "POINT"
    TEXT = "TEXT"
    MTEXT = "MTEXT"
    INSERT = "INSERT"
    SPLINE = "SPLINE"
    FACE3D = "3DFACE"
    SOLID = "SOLID"
    UNSUPPORTED = "UNSUPPORTED"


DEFAULT_LAYER = "0"

# Unit codes ($INSUNITS) to names
UNITS = {
    0: "Unitless",
    1: "Inches",
    2: "Feet",
    3: "Miles",
    4: "Millimeters",
    5: "Centimeters",
    6: "Meters",
    7: "Kilometers",
    8: "Microinches",
    9: "Mils",
    10: "Yards",
    11: "Angstroms",
    12: "Nanometers",
    13: "Microns",
    14: "Decimeters",
    15: "Decameters",
    16: "Hectometers",
    17: "Gigameters",
    18: "Astronomical units",
    19: "Light years",
    20: "Parsecs",
}


@dataclass(frozen=True)
class DXFPoint:
    """2D/3D Point. z is None when the file carries no Z ordinate."""
    x: float
    y: float
    z: Optional[float] = None

    @property
    def has_z(self) -> bool:
        return self.z is not None

    @property
    def is_finite(self) -> bool:
        values = (self.x, self.y) if self.z is None else (self.x, self.y, self.z)
        return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True, kw_only=True)
class EntityBase:
    """Attributes shared by all entities."""
    kind: ClassVar[EntityKind] = EntityKind.UNSUPPORTED

    handle: Optional[str] = None
    layer: Optional[str] = None
    color: int = 256  # BYLAYER
    linetype: str = "BYLAYER"
    xdata: dict = field(default_factory=dict)

    @property
    def dxftype(self) -> str:
        return self.kind.value


@dataclass(frozen=True, kw_only=True)
class LineEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.LINE
    start: Optional[DXFPoint] = None
    end: Optional[DXFPoint] = None


@dataclass(frozen=True, kw_only=True)
class LWPolylineEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.LWPOLYLINE
    vertices: tuple = ()
    closed: bool = False
    elevation: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class PolylineEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.POLYLINE
    vertices: tuple = ()
    closed: bool = False
    is_3d: bool = False
    is_mesh: bool = False


@dataclass(frozen=True, kw_only=True)
class CircleEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.CIRCLE
    center: Optional[DXFPoint] = None
    radius: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class ArcEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.ARC
    center: Optional[DXFPoint] = None
    radius: Optional[float] = None
    start_angle: float = 0.0
    end_angle: float = 360.0


@dataclass(frozen=True, kw_only=True)
class EllipseEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.ELLIPSE
    center: Optional[DXFPoint] = None
    major_axis: Optional[DXFPoint] = None
    ratio: float = 1.0
    start_param: float = 0.0
    end_param: float = 2 * math.pi


@dataclass(frozen=True, kw_only=True)
class PointEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.POINT
    location: Optional[DXFPoint] = None


@dataclass(frozen=True, kw_only=True)
class TextEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.TEXT
    insert: Optional[DXFPoint] = None
    text: str = ""
    height: float = 0.0
    rotation: float = 0.0


@dataclass(frozen=True, kw_only=True)
class MTextEntity(TextEntity):
    kind: ClassVar[EntityKind] = EntityKind.MTEXT


@dataclass(frozen=True, kw_only=True)
class InsertEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.INSERT
    name: str = ""
    insert: Optional[DXFPoint] = None
    scale: tuple = (1.0, 1.0, 1.0)
    rotation: float = 0.0
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class SplineEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.SPLINE
    control_points: tuple = ()
    fit_points: tuple = ()
    closed: bool = False


@dataclass(frozen=True, kw_only=True)
class FaceEntity(EntityBase):
    """3DFACE: corners in drawing order."""
    kind: ClassVar[EntityKind] = EntityKind.FACE3D
    corners: tuple = ()


@dataclass(frozen=True, kw_only=True)
class SolidEntity(FaceEntity):
    """SOLID: corners stored in DXF order (1, 2, 4, 3 when walked)."""
    kind: ClassVar[EntityKind] = EntityKind.SOLID


@dataclass(frozen=True, kw_only=True)
class UnsupportedEntity(EntityBase):
    kind: ClassVar[EntityKind] = EntityKind.UNSUPPORTED
    entity_type: str = ""

    @property
    def dxftype(self) -> str:
        return self.entity_type or self.kind.value


DxfEntity = Union[
    LineEntity,
    LWPolylineEntity,
    PolylineEntity,
    CircleEntity,
    ArcEntity,
    EllipseEntity,
    PointEntity,
    TextEntity,
    MTextEntity,
    InsertEntity,
    SplineEntity,
    FaceEntity,
    SolidEntity,
    UnsupportedEntity,
]


@dataclass
class DxfLayer:
    """Layer definition"""
    name: str
    color: int = 7
    linetype: str = "CONTINUOUS"
    is_on: bool = True
    is_frozen: bool = False
    is_locked: bool = False
    lineweight: Optional[int] = None
    handle: Optional[str] = None
    implicit: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "color": self.color,
            "linetype": self.linetype,
            "is_on": self.is_on,
            "is_frozen": self.is_frozen,
            "is_locked": self.is_locked,
            "implicit": self.implicit,
        }


@dataclass
class DxfBlock:
    """Block definition with its own entities."""
    name: str
    base_point: Optional[DXFPoint] = None
    layer: str = DEFAULT_LAYER
    entities: list = field(default_factory=list)


@dataclass
class DxfHeader:
    """HEADER section variables ($ACADVER, $INSUNITS, ...)."""
    variables: dict = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    @property
    def version(self) -> str:
        return str(self.variables.get("$ACADVER", ""))

    @property
    def units(self) -> str:
        code = self.variables.get("$INSUNITS", 0)
        return UNITS.get(code, "Unknown")

    def string_values(self) -> list[tuple[str, str]]:
        """All (variable, value) pairs whose value is text."""
        return [
            (name, value)
            for name, value in self.variables.items()
            if isinstance(value, str)
        ]


@dataclass
class DxfStructure:
    """Complete parse result for one file."""
    header: DxfHeader = field(default_factory=DxfHeader)
    layers: dict = field(default_factory=dict)
    blocks: dict = field(default_factory=dict)
    entities: list = field(default_factory=list)
    source: str = "parser"

    def layer_names(self) -> list[str]:
        return list(self.layers.keys())

    def ensure_layers(self) -> list[str]:
        """
        Add implicit layers for names that entities reference but the
        LAYER table does not define. Returns the names that were added.
        """
        added = []
        if DEFAULT_LAYER not in self.layers:
            self.layers[DEFAULT_LAYER] = DxfLayer(name=DEFAULT_LAYER, implicit=True)
            added.append(DEFAULT_LAYER)
        for entity in self.entities:
            name = entity.layer
            if name and name not in self.layers:
                self.layers[name] = DxfLayer(name=name, implicit=True)
                added.append(name)
        return added

    def entity_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entity in self.entities:
            counts[entity.dxftype] = counts.get(entity.dxftype, 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "dxf_version": self.header.version,
            "units": self.header.units,
            "source": self.source,
            "statistics": {
                "total_entities": len(self.entities),
                "entities": self.entity_counts(),
                "layers": len(self.layers),
                "blocks": len(self.blocks),
            },
            "layers": [layer.to_dict() for layer in self.layers.values()],
        }
