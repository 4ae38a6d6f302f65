"""
Section parsers: group-code pairs -> DxfStructure.

The stream is split into sections first (SECTION/ENDSEC bracketing is
checked there), then each known section is handed to its parser.
Unknown sections (CLASSES, OBJECTS, THUMBNAILIMAGE, ...) are skipped.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional

from apps.core.exceptions import SectionParseError

from .group_codes import GroupCodePair
from .models import (
    DEFAULT_LAYER,
    ArcEntity,
    CircleEntity,
    DxfBlock,
    DxfHeader,
    DxfLayer,
    DxfStructure,
    DXFPoint,
    EllipseEntity,
    FaceEntity,
    InsertEntity,
    LineEntity,
    LWPolylineEntity,
    MTextEntity,
    PointEntity,
    PolylineEntity,
    SolidEntity,
    SplineEntity,
    TextEntity,
    UnsupportedEntity,
)

logger = logging.getLogger(__name__)

Record = list[GroupCodePair]

XDATA_APP_CODE = 1001
APP_GROUP_CODE = 102

# POLYLINE flags (group 70)
POLYLINE_CLOSED = 1
POLYLINE_3D = 8
POLYLINE_MESH = 16
POLYLINE_POLYFACE = 64
VERTEX_FACE_RECORD = 128
VERTEX_POLYFACE_LOCATION = 64

# LAYER flags (group 70)
LAYER_FROZEN = 1
LAYER_LOCKED = 4


@dataclass
class RawSection:
    """One SECTION ... ENDSEC block."""
    name: str
    line: int
    pairs: list = field(default_factory=list)


def split_sections(pairs: list[GroupCodePair]) -> list[RawSection]:
    """Split the pair stream into sections, checking the bracketing."""
    sections: list[RawSection] = []
    current: Optional[RawSection] = None
    index = 0
    total = len(pairs)

    while index < total:
        pair = pairs[index]

        if pair.code == 0 and pair.value == "SECTION":
            if current is not None:
                raise SectionParseError(
                    "SECTION started before ENDSEC", current.name, pair.line
                )
            if index + 1 >= total or pairs[index + 1].code != 2:
                raise SectionParseError("SECTION without name", "", pair.line)
            current = RawSection(name=pairs[index + 1].value.upper(), line=pair.line)
            index += 2
            continue

        if pair.code == 0 and pair.value == "ENDSEC":
            if current is None:
                raise SectionParseError("ENDSEC without SECTION", "", pair.line)
            sections.append(current)
            current = None
            index += 1
            continue

        if pair.code == 0 and pair.value == "EOF":
            if current is not None:
                raise SectionParseError("EOF before ENDSEC", current.name, pair.line)
            break

        if current is None:
            raise SectionParseError(
                f"Group code {pair.code} outside of any section", "", pair.line
            )
        current.pairs.append(pair)
        index += 1

    if current is not None:
        raise SectionParseError("Missing ENDSEC", current.name, current.line)

    return sections


def split_records(pairs: list[GroupCodePair], section: str) -> list[Record]:
    """Split section content into records, each starting with a code 0 pair."""
    records: list[Record] = []
    for pair in pairs:
        if pair.code == 0:
            records.append([pair])
        elif not records:
            raise SectionParseError(
                f"Group code {pair.code} before first record", section, pair.line
            )
        else:
            records[-1].append(pair)
    return records


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------

def _split_xdata(record: Record) -> tuple[Record, dict]:
    """
    Separate entity body from XDATA and drop application groups
    (102 "{ACAD_REACTORS" ... 102 "}").
    """
    body: Record = []
    xdata: dict[str, list] = {}
    app_name: Optional[str] = None
    in_app_group = False

    for pair in record:
        if app_name is not None or pair.code == XDATA_APP_CODE:
            if pair.code == XDATA_APP_CODE:
                app_name = pair.value
                xdata.setdefault(app_name, [])
            else:
                xdata[app_name].append((pair.code, pair.typed))
            continue
        if pair.code == APP_GROUP_CODE:
            in_app_group = pair.value.startswith("{")
            continue
        if in_app_group:
            continue
        body.append(pair)

    return body, xdata


def _first_values(body: Record) -> dict:
    """First typed value per group code."""
    values: dict = {}
    for pair in body:
        if pair.code not in values:
            values[pair.code] = pair.typed
    return values


def _point(values: dict, code: int = 10, keep_zero_z: bool = False) -> Optional[DXFPoint]:
    """Point from codes (code, code+10, code+20); Z == 0 counts as absent unless keep_zero_z."""
    x = values.get(code)
    y = values.get(code + 10)
    if x is None or y is None:
        return None
    z = values.get(code + 20)
    if z == 0.0 and not keep_zero_z:
        z = None
    return DXFPoint(x, y, z)


def _common(values: dict, xdata: dict) -> dict:
    return {
        "handle": values.get(5),
        "layer": values.get(8) or None,
        "color": values.get(62, 256),
        "linetype": values.get(6, "BYLAYER"),
        "xdata": xdata,
    }


# ---------------------------------------------------------------------------
# Entity builders
# ---------------------------------------------------------------------------

def _build_line(values: dict, body: Record, common: dict) -> LineEntity:
    return LineEntity(start=_point(values, 10), end=_point(values, 11), **common)


def _build_lwpolyline(values: dict, body: Record, common: dict) -> LWPolylineEntity:
    elevation = values.get(38) or None
    vertices = []
    x: Optional[float] = None
    y: Optional[float] = None
    for pair in body:
        if pair.code == 10:
            if x is not None:
                vertices.append((x, y))
            x, y = pair.typed, None
        elif pair.code == 20 and x is not None and y is None:
            y = pair.typed
    if x is not None:
        vertices.append((x, y))

    points = tuple(
        DXFPoint(vx, float("nan") if vy is None else vy, elevation)
        for vx, vy in vertices
    )
    return LWPolylineEntity(
        vertices=points,
        closed=bool(values.get(70, 0) & POLYLINE_CLOSED),
        elevation=elevation,
        **common,
    )


def _build_polyline(values: dict, common: dict, vertex_records: list[Record]) -> PolylineEntity:
    flags = values.get(70, 0)
    is_3d = bool(flags & POLYLINE_3D)
    # 2D polylines carry their elevation on the POLYLINE record
    elevation = values.get(30) or None
    vertices = []
    for record in vertex_records:
        body, _ = _split_xdata(record[1:])
        vertex_values = _first_values(body)
        vertex_flags = vertex_values.get(70, 0)
        if vertex_flags & VERTEX_FACE_RECORD and not vertex_flags & VERTEX_POLYFACE_LOCATION:
            continue
        point = _point(vertex_values, 10, keep_zero_z=is_3d) or DXFPoint(float("nan"), float("nan"))
        if not is_3d:
            point = DXFPoint(point.x, point.y, elevation)
        vertices.append(point)

    return PolylineEntity(
        vertices=tuple(vertices),
        closed=bool(flags & POLYLINE_CLOSED),
        is_3d=is_3d,
        is_mesh=bool(flags & (POLYLINE_MESH | POLYLINE_POLYFACE)),
        **common,
    )


def _build_circle(values: dict, body: Record, common: dict) -> CircleEntity:
    return CircleEntity(center=_point(values, 10), radius=values.get(40), **common)


def _build_arc(values: dict, body: Record, common: dict) -> ArcEntity:
    return ArcEntity(
        center=_point(values, 10),
        radius=values.get(40),
        start_angle=values.get(50, 0.0),
        end_angle=values.get(51, 360.0),
        **common,
    )


def _build_ellipse(values: dict, body: Record, common: dict) -> EllipseEntity:
    return EllipseEntity(
        center=_point(values, 10),
        major_axis=_point(values, 11),
        ratio=values.get(40, 1.0),
        start_param=values.get(41, 0.0),
        end_param=values.get(42, 2 * math.pi),
        **common,
    )


def _build_point(values: dict, body: Record, common: dict) -> PointEntity:
    return PointEntity(location=_point(values, 10), **common)


def _build_text(values: dict, body: Record, common: dict) -> TextEntity:
    return TextEntity(
        insert=_point(values, 10),
        text=values.get(1, ""),
        height=values.get(40, 0.0),
        rotation=values.get(50, 0.0),
        **common,
    )


def _build_mtext(values: dict, body: Record, common: dict) -> MTextEntity:
    # Long MTEXT is split into 3-chunks followed by the final 1
    chunks = [pair.value for pair in body if pair.code == 3]
    chunks.append(values.get(1, ""))
    return MTextEntity(
        insert=_point(values, 10),
        text="".join(chunks),
        height=values.get(40, 0.0),
        rotation=values.get(50, 0.0),
        **common,
    )


def _build_spline(values: dict, body: Record, common: dict) -> SplineEntity:
    control: list = []
    fit: list = []
    for target, base in ((control, 10), (fit, 11)):
        current: list = []
        for pair in body:
            if pair.code == base:
                current = [pair.typed, None, None]
                target.append(current)
            elif pair.code == base + 10 and current:
                current[1] = pair.typed
            elif pair.code == base + 20 and current:
                current[2] = pair.typed
    return SplineEntity(
        control_points=tuple(_coerce(c) for c in control),
        fit_points=tuple(_coerce(c) for c in fit),
        closed=bool(values.get(70, 0) & 1),
        **common,
    )


def _coerce(parts: list) -> DXFPoint:
    x, y, z = parts
    return DXFPoint(x, float("nan") if y is None else y, z)


def _build_face(values: dict, body: Record, common: dict) -> FaceEntity:
    return FaceEntity(corners=_corners(values), **common)


def _build_solid(values: dict, body: Record, common: dict) -> SolidEntity:
    return SolidEntity(corners=_corners(values), **common)


def _corners(values: dict) -> tuple:
    corners = []
    for code in (10, 11, 12, 13):
        point = _point(values, code)
        if point is not None:
            corners.append(point)
    return tuple(corners)


ENTITY_BUILDERS: dict[str, Callable] = {
    "LINE": _build_line,
    "LWPOLYLINE": _build_lwpolyline,
    "CIRCLE": _build_circle,
    "ARC": _build_arc,
    "ELLIPSE": _build_ellipse,
    "POINT": _build_point,
    "TEXT": _build_text,
    "MTEXT": _build_mtext,
    "SPLINE": _build_spline,
    "3DFACE": _build_face,
    "SOLID": _build_solid,
}


def _take_sequence(records: list[Record], start: int, child: str) -> tuple[list[Record], int]:
    """Collect `child` records following records[start - 1] up to SEQEND."""
    children: list[Record] = []
    index = start
    while index < len(records) and records[index][0].value == child:
        children.append(records[index])
        index += 1
    if index < len(records) and records[index][0].value == "SEQEND":
        index += 1
    return children, index


def parse_entities(pairs: list[GroupCodePair], section: str = "ENTITIES") -> list:
    """Parse an entity record stream (ENTITIES section or a block body)."""
    records = split_records(pairs, section)
    entities = []
    index = 0

    while index < len(records):
        record = records[index]
        entity_type = record[0].value
        body, xdata = _split_xdata(record[1:])
        values = _first_values(body)
        common = _common(values, xdata)
        index += 1

        if entity_type == "POLYLINE":
            vertices, index = _take_sequence(records, index, "VERTEX")
            entities.append(_build_polyline(values, common, vertices))
        elif entity_type == "INSERT":
            attributes = {}
            if values.get(66, 0) == 1:
                attribs, index = _take_sequence(records, index, "ATTRIB")
                for attrib in attribs:
                    attrib_values = _first_values(_split_xdata(attrib[1:])[0])
                    tag = attrib_values.get(2)
                    if tag:
                        attributes[tag] = attrib_values.get(1, "")
            entities.append(InsertEntity(
                name=values.get(2, ""),
                insert=_point(values, 10),
                scale=(values.get(41, 1.0), values.get(42, 1.0), values.get(43, 1.0)),
                rotation=values.get(50, 0.0),
                attributes=attributes,
                **common,
            ))
        elif entity_type in ("VERTEX", "SEQEND", "ATTRIB"):
            logger.debug("Orphan %s record at line %s", entity_type, record[0].line)
        else:
            builder = ENTITY_BUILDERS.get(entity_type)
            if builder is None:
                entities.append(UnsupportedEntity(entity_type=entity_type, **common))
            else:
                entities.append(builder(values, body, common))

    return entities


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------

def parse_header(section: RawSection) -> DxfHeader:
    variables: dict = {}
    name: Optional[str] = None
    scalar = None
    coords: dict = {}

    def flush():
        if name is None:
            return
        if 10 in coords and 20 in coords:
            variables[name] = DXFPoint(coords[10], coords[20], coords.get(30))
        else:
            variables[name] = scalar

    for pair in section.pairs:
        if pair.code == 9:
            flush()
            name, scalar, coords = pair.value, None, {}
        elif name is None:
            raise SectionParseError("Header value without variable name", "HEADER", pair.line)
        elif pair.code in (10, 20, 30):
            coords[pair.code] = pair.typed
        else:
            scalar = pair.typed
    flush()

    return DxfHeader(variables=variables)


def parse_tables(section: RawSection) -> dict[str, DxfLayer]:
    """Extract LAYER table entries; other tables are skipped."""
    layers: dict[str, DxfLayer] = {}
    table: Optional[str] = None

    for record in split_records(section.pairs, "TABLES"):
        marker = record[0].value
        body, _ = _split_xdata(record[1:])
        values = _first_values(body)

        if marker == "TABLE":
            table = values.get(2)
        elif marker == "ENDTAB":
            table = None
        elif marker == "LAYER" and table == "LAYER":
            name = values.get(2)
            if not name:
                continue
            color = values.get(62, 7)
            flags = values.get(70, 0)
            layers[name] = DxfLayer(
                name=name,
                color=abs(color),
                linetype=values.get(6, "CONTINUOUS"),
                is_on=color >= 0,
                is_frozen=bool(flags & LAYER_FROZEN),
                is_locked=bool(flags & LAYER_LOCKED),
                lineweight=values.get(370),
                handle=values.get(5),
            )

    return layers


def parse_blocks(section: RawSection) -> dict[str, DxfBlock]:
    blocks: dict[str, DxfBlock] = {}
    current: Optional[DxfBlock] = None
    content: list[GroupCodePair] = []
    start_line = section.line

    for record in split_records(section.pairs, "BLOCKS"):
        marker = record[0]
        if marker.value == "BLOCK":
            if current is not None:
                raise SectionParseError("BLOCK started before ENDBLK", "BLOCKS", marker.line)
            values = _first_values(_split_xdata(record[1:])[0])
            current = DxfBlock(
                name=values.get(2, ""),
                base_point=_point(values, 10, keep_zero_z=True),
                layer=values.get(8) or DEFAULT_LAYER,
            )
            content = []
            start_line = marker.line
        elif marker.value == "ENDBLK":
            if current is None:
                raise SectionParseError("ENDBLK without BLOCK", "BLOCKS", marker.line)
            current.entities = parse_entities(content, "BLOCKS")
            blocks[current.name] = current
            current = None
        elif current is None:
            raise SectionParseError(
                f"{marker.value} record outside of a block", "BLOCKS", marker.line
            )
        else:
            content.extend(record)

    if current is not None:
        raise SectionParseError(f"Block {current.name!r} without ENDBLK", "BLOCKS", start_line)

    return blocks


def parse_structure(pairs: list[GroupCodePair]) -> DxfStructure:
    """Parse a full pair stream into a DxfStructure."""
    structure = DxfStructure()

    for section in split_sections(pairs):
        if section.name == "HEADER":
            structure.header = parse_header(section)
        elif section.name == "TABLES":
            structure.layers.update(parse_tables(section))
        elif section.name == "BLOCKS":
            structure.blocks.update(parse_blocks(section))
        elif section.name == "ENTITIES":
            structure.entities.extend(parse_entities(section.pairs))
        else:
            logger.debug("Skipping section %s", section.name)

    structure.ensure_layers()
    return structure
