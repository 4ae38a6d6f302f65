"""
ezdxf fallback: maps an ezdxf document onto DxfStructure.

Used for binary DXF and for files the group-code reader rejects;
ezdxf's recover mode tolerates many structural defects.
"""
import logging
import os
import struct
import tempfile
from typing import Optional

import ezdxf
from ezdxf import recover
from ezdxf.document import Drawing
from ezdxf.entities import DXFEntity

from .models import (
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

BINARY_MAGIC = b"AutoCAD Binary DXF\r\n\x1a\x00"


def read_document(content: bytes) -> Drawing:
    """
    Load DXF bytes with ezdxf. Text DXF goes through recover mode;
    binary DXF needs ezdxf.readfile, which is followed by an audit.
    Raises ezdxf.DXFStructureError for unreadable input.
    """
    with tempfile.NamedTemporaryFile(suffix=".dxf", delete=False) as tmp:
        tmp.write(content)
        tmp_path = tmp.name
    try:
        if content.startswith(BINARY_MAGIC):
            try:
                doc = ezdxf.readfile(tmp_path)
            except (struct.error, IndexError, KeyError, ValueError) as e:
                # truncated or corrupt binary tag stream
                raise ezdxf.DXFStructureError(f"Invalid binary DXF: {e}") from e
            auditor = doc.audit()
        else:
            doc, auditor = recover.readfile(tmp_path)
    finally:
        os.unlink(tmp_path)
    if auditor.has_errors:
        logger.warning(
            "ezdxf recovered document with %d errors", len(auditor.errors)
        )
    return doc


def _vec(value, keep_zero_z: bool = False) -> Optional[DXFPoint]:
    """
    Convert an ezdxf Vec2/Vec3 (or tuple) to DXFPoint.

    ezdxf always reports a Z ordinate; Z == 0 is treated as absent
    unless keep_zero_z is set. The group-code parser applies the same rule.
    """
    if value is None:
        return None
    x, y = float(value[0]), float(value[1])
    z = float(value[2]) if len(value) > 2 else None
    if z == 0.0 and not keep_zero_z:
        z = None
    return DXFPoint(x, y, z)


def _is_on(layer) -> bool:
    return layer.is_on() if callable(layer.is_on) else layer.is_on


def _is_frozen(layer) -> bool:
    return layer.is_frozen() if callable(layer.is_frozen) else layer.is_frozen


def _is_locked(layer) -> bool:
    return layer.is_locked() if callable(layer.is_locked) else layer.is_locked


def _xdata(entity: DXFEntity) -> dict:
    xdata = getattr(entity, "xdata", None)
    if not xdata:
        return {}
    return {
        appid: [(tag.code, tag.value) for tag in tags if tag.code != 1001]
        for appid, tags in xdata.data.items()
    }


def _common(entity: DXFEntity) -> dict:
    return {
        "handle": entity.dxf.get("handle"),
        "layer": entity.dxf.get("layer") or None,
        "color": entity.dxf.get("color", 256),
        "linetype": entity.dxf.get("linetype", "BYLAYER"),
        "xdata": _xdata(entity),
    }


def convert_entity(entity: DXFEntity):
    """Map one ezdxf entity onto the DxfEntity set."""
    entity_type = entity.dxftype()
    common = _common(entity)
    dxf = entity.dxf

    if entity_type == "LINE":
        return LineEntity(start=_vec(dxf.start), end=_vec(dxf.end), **common)

    if entity_type == "LWPOLYLINE":
        elevation = dxf.get("elevation") or None
        vertices = tuple(
            DXFPoint(float(x), float(y), elevation)
            for x, y in entity.get_points(format="xy")
        )
        return LWPolylineEntity(
            vertices=vertices, closed=entity.closed, elevation=elevation, **common
        )

    if entity_type == "POLYLINE":
        is_3d = entity.is_3d_polyline
        vertices = tuple(
            _vec(v.dxf.location, keep_zero_z=is_3d) for v in entity.vertices
        )
        return PolylineEntity(
            vertices=vertices,
            closed=entity.is_closed,
            is_3d=is_3d,
            is_mesh=entity.is_poly_face_mesh or entity.is_polygon_mesh,
            **common,
        )

    if entity_type == "CIRCLE":
        return CircleEntity(center=_vec(dxf.center), radius=dxf.radius, **common)

    if entity_type == "ARC":
        return ArcEntity(
            center=_vec(dxf.center),
            radius=dxf.radius,
            start_angle=dxf.start_angle,
            end_angle=dxf.end_angle,
            **common,
        )

    if entity_type == "ELLIPSE":
        return EllipseEntity(
            center=_vec(dxf.center),
            major_axis=_vec(dxf.major_axis),
            ratio=dxf.ratio,
            start_param=dxf.start_param,
            end_param=dxf.end_param,
            **common,
        )

    if entity_type == "POINT":
        return PointEntity(location=_vec(dxf.location), **common)

    if entity_type == "TEXT":
        return TextEntity(
            insert=_vec(dxf.insert),
            text=dxf.get("text", ""),
            height=dxf.get("height", 0.0),
            rotation=dxf.get("rotation", 0.0),
            **common,
        )

    if entity_type == "MTEXT":
        return MTextEntity(
            insert=_vec(dxf.insert),
            text=entity.plain_text(),
            height=dxf.get("char_height", 0.0),
            rotation=dxf.get("rotation", 0.0),
            **common,
        )

    if entity_type == "INSERT":
        return InsertEntity(
            name=dxf.name,
            insert=_vec(dxf.insert),
            scale=(dxf.get("xscale", 1.0), dxf.get("yscale", 1.0), dxf.get("zscale", 1.0)),
            rotation=dxf.get("rotation", 0.0),
            attributes={a.dxf.tag: a.dxf.text for a in entity.attribs},
            **common,
        )

    if entity_type == "SPLINE":
        return SplineEntity(
            control_points=tuple(_vec(p) for p in entity.control_points),
            fit_points=tuple(_vec(p) for p in entity.fit_points),
            closed=entity.closed,
            **common,
        )

    if entity_type in ("3DFACE", "SOLID"):
        corners = tuple(
            _vec(dxf.get(name))
            for name in ("vtx0", "vtx1", "vtx2", "vtx3")
            if dxf.get(name) is not None
        )
        cls = FaceEntity if entity_type == "3DFACE" else SolidEntity
        return cls(corners=corners, **common)

    return UnsupportedEntity(entity_type=entity_type, **common)


def structure_from_document(doc: Drawing) -> DxfStructure:
    """Build a DxfStructure from a loaded ezdxf document."""
    structure = DxfStructure(source="ezdxf")

    variables = {}
    for name in doc.header.varnames():
        value = doc.header.get(name)
        if hasattr(value, "__len__") and not isinstance(value, str) and len(value) in (2, 3):
            value = _vec(value, keep_zero_z=True)
        variables[name] = value
    structure.header = DxfHeader(variables=variables)

    for layer in doc.layers:
        color = layer.dxf.get("color", 7)
        structure.layers[layer.dxf.name] = DxfLayer(
            name=layer.dxf.name,
            color=abs(color),
            linetype=layer.dxf.get("linetype", "CONTINUOUS"),
            is_on=_is_on(layer),
            is_frozen=_is_frozen(layer),
            is_locked=_is_locked(layer),
            lineweight=layer.dxf.get("lineweight"),
            handle=layer.dxf.get("handle"),
        )

    for block in doc.blocks:
        # Skip model/paper space and anonymous blocks
        if block.name.startswith("*"):
            continue
        structure.blocks[block.name] = DxfBlock(
            name=block.name,
            base_point=_vec(block.block.dxf.get("base_point"), keep_zero_z=True),
            layer=block.block.dxf.get("layer", "0"),
            entities=[convert_entity(e) for e in block],
        )

    for entity in doc.modelspace():
        structure.entities.append(convert_entity(entity))

    structure.ensure_layers()
    logger.info(
        "ezdxf fallback mapped %d entities (DXF %s)",
        len(structure.entities),
        doc.dxfversion,
    )
    return structure


def read_structure(content: bytes) -> DxfStructure:
    """Load bytes with ezdxf and map them onto DxfStructure."""
    try:
        doc = read_document(content)
    except ezdxf.DXFError as e:
        logger.warning("ezdxf could not read document: %s", e)
        raise
    return structure_from_document(doc)
