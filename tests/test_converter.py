import math

import pytest

from apps.dxf.services.converter import EntityConverter, convert_entities
from apps.dxf.services.parser.models import (
    ArcEntity,
    CircleEntity,
    DXFPoint,
    EllipseEntity,
    FaceEntity,
    InsertEntity,
    LineEntity,
    LWPolylineEntity,
    PointEntity,
    PolylineEntity,
    SolidEntity,
    SplineEntity,
    TextEntity,
    UnsupportedEntity,
)


def pts(*coords):
    return tuple(DXFPoint(*c) for c in coords)


@pytest.fixture
def converter(context):
    return EntityConverter(context)


def test_line_to_linestring(converter):
    feature = converter.convert(
        LineEntity(start=DXFPoint(0, 0), end=DXFPoint(3, 4), layer="Axes", handle="1F")
    )
    assert feature.geometry == {"type": "LineString", "coordinates": [[0, 0], [3, 4]]}
    assert feature.layer == "Axes"
    assert feature.properties["handle"] == "1F"
    assert feature.properties["entity_type"] == "LINE"


def test_z_is_preserved_when_present(converter):
    feature = converter.convert(
        LineEntity(start=DXFPoint(0, 0, 410.0), end=DXFPoint(1, 1, 411.0), layer="0")
    )
    assert feature.geometry["coordinates"] == [[0, 0, 410.0], [1, 1, 411.0]]


def test_closed_lwpolyline_to_polygon(converter):
    entity = LWPolylineEntity(
        vertices=pts((0, 0), (10, 0), (10, 10), (0, 10)), closed=True, layer="Building"
    )
    geometry = converter.convert(entity).geometry

    assert geometry["type"] == "Polygon"
    ring = geometry["coordinates"][0]
    assert len(ring) == 5
    assert ring[0] == ring[-1]


def test_open_polyline_to_linestring(converter):
    entity = PolylineEntity(vertices=pts((0, 0), (5, 0), (5, 5)), layer="Roads")
    assert converter.convert(entity).geometry["type"] == "LineString"


def test_closed_polyline_with_two_vertices_degrades_to_linestring(converter):
    entity = LWPolylineEntity(vertices=pts((0, 0), (5, 0)), closed=True, layer="0")
    feature = converter.convert(entity)

    assert feature.geometry["type"] == "LineString"
    assert feature.properties["degenerate_closed"] is True


def test_single_vertex_polyline_fails(converter):
    entity = LWPolylineEntity(vertices=pts((0, 0)), layer="0", handle="AA")

    assert converter.convert(entity) is None
    assert converter.stats.failed["LWPOLYLINE"] == 1
    assert converter.stats.issues[0]["handle"] == "AA"
    assert converter.stats.issues[0]["category"] == "failed"


def test_missing_layer_is_skipped(converter):
    assert converter.convert(LineEntity(start=DXFPoint(0, 0), end=DXFPoint(1, 1))) is None
    assert converter.stats.skipped["LINE"] == 1
    assert converter.stats.total_rejected == 1


def test_missing_vertex_data_is_skipped(converter):
    assert converter.convert(LineEntity(start=DXFPoint(0, 0), layer="0")) is None
    assert converter.stats.skipped["LINE"] == 1


def test_non_finite_coordinates_fail(converter):
    entity = LWPolylineEntity(vertices=pts((0, 0), (1, math.nan)), layer="0")
    assert converter.convert(entity) is None
    assert converter.stats.failed["LWPOLYLINE"] == 1
    assert "Non-finite" in converter.stats.issues[0]["reason"]


def test_circle_to_polygon_with_configured_segments(context):
    converter = EntityConverter(context, circle_segments=16)
    feature = converter.convert(CircleEntity(center=DXFPoint(5, 5), radius=2.0, layer="Trees"))

    ring = feature.geometry["coordinates"][0]
    assert feature.geometry["type"] == "Polygon"
    assert len(ring) == 17
    assert ring[0] == ring[-1]
    assert ring[0] == pytest.approx([7.0, 5.0])
    assert feature.properties["radius"] == 2.0


def test_circle_with_zero_radius_fails(converter):
    assert converter.convert(CircleEntity(center=DXFPoint(0, 0), radius=0.0, layer="0")) is None
    assert converter.stats.failed["CIRCLE"] == 1


def test_quarter_arc(context):
    converter = EntityConverter(context, arc_segments=8)
    feature = converter.convert(
        ArcEntity(center=DXFPoint(0, 0), radius=10.0, start_angle=0.0, end_angle=90.0, layer="0")
    )

    coords = feature.geometry["coordinates"]
    assert feature.geometry["type"] == "LineString"
    assert len(coords) == 9
    assert coords[0] == pytest.approx([10.0, 0.0])
    assert coords[-1] == pytest.approx([0.0, 10.0], abs=1e-9)


def test_arc_across_zero_degrees(context):
    converter = EntityConverter(context, arc_segments=4)
    feature = converter.convert(
        ArcEntity(center=DXFPoint(0, 0), radius=1.0, start_angle=270.0, end_angle=90.0, layer="0")
    )
    middle = feature.geometry["coordinates"][2]
    assert middle == pytest.approx([1.0, 0.0], abs=1e-9)


def test_full_ellipse_is_polygon_partial_is_linestring(converter):
    full = converter.convert(
        EllipseEntity(center=DXFPoint(0, 0), major_axis=DXFPoint(4, 0), ratio=0.5, layer="0")
    )
    half = converter.convert(
        EllipseEntity(
            center=DXFPoint(0, 0), major_axis=DXFPoint(4, 0), ratio=0.5,
            start_param=0.0, end_param=math.pi, layer="0",
        )
    )
    assert full.geometry["type"] == "Polygon"
    assert half.geometry["type"] == "LineString"
    assert half.geometry["coordinates"][-1] == pytest.approx([-4.0, 0.0], abs=1e-9)


@pytest.mark.parametrize(
    "major_axis, ratio",
    [
        (DXFPoint(0, 0), 0.5),
        (DXFPoint(4, 0), 0.0),
        (DXFPoint(4, 0), -0.5),
    ],
)
def test_degenerate_ellipse_fails(converter, major_axis, ratio):
    ellipse = EllipseEntity(center=DXFPoint(1, 1), major_axis=major_axis, ratio=ratio, layer="A")

    assert converter.convert(ellipse) is None
    assert converter.stats.failed["ELLIPSE"] == 1


def test_point_text_and_insert_become_points(converter):
    point = converter.convert(PointEntity(location=DXFPoint(1, 2), layer="Survey"))
    text = converter.convert(
        TextEntity(insert=DXFPoint(3, 4), text="Parzelle 12", height=2.5, layer="Labels")
    )
    insert = converter.convert(
        InsertEntity(
            name="TREE", insert=DXFPoint(5, 6), scale=(2.0, 2.0, 1.0),
            attributes={"SPECIES": "Quercus"}, layer="Trees",
        )
    )

    assert point.geometry == {"type": "Point", "coordinates": [1, 2]}
    assert text.properties["text"] == "Parzelle 12"
    assert text.properties["text_height"] == 2.5
    assert insert.properties["block_name"] == "TREE"
    assert insert.properties["scale_x"] == 2.0
    assert insert.properties["attr_SPECIES"] == "Quercus"


def test_spline_prefers_fit_points(converter):
    entity = SplineEntity(
        control_points=pts((0, 0), (1, 5), (2, -5), (3, 0)),
        fit_points=pts((0, 0), (3, 0)),
        layer="0",
    )
    assert converter.convert(entity).geometry["coordinates"] == [[0, 0], [3, 0]]


def test_solid_corners_are_reordered(converter):
    entity = SolidEntity(corners=pts((0, 0), (1, 0), (0, 1), (1, 1)), layer="Fill")
    ring = converter.convert(entity).geometry["coordinates"][0]
    assert ring == [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]


def test_face_with_three_corners(converter):
    entity = FaceEntity(corners=pts((0, 0, 1), (1, 0, 1), (0, 1, 1)), layer="Terrain")
    geometry = converter.convert(entity).geometry
    assert geometry["type"] == "Polygon"
    assert geometry["coordinates"][0][0] == [0, 0, 1]


def test_unsupported_and_mesh_entities_are_counted(converter):
    assert converter.convert(UnsupportedEntity(entity_type="HATCH", layer="Fill")) is None
    mesh = PolylineEntity(vertices=pts((0, 0), (1, 0), (1, 1)), is_mesh=True, layer="0")
    assert converter.convert(mesh) is None
    assert converter.stats.unsupported == {"HATCH": 1, "POLYLINE": 1}


def test_convert_entities_statistics(context):
    entities = [
        LineEntity(start=DXFPoint(0, 0), end=DXFPoint(1, 1), layer="A"),
        LineEntity(start=DXFPoint(0, 0), end=DXFPoint(1, 1)),
        CircleEntity(center=DXFPoint(0, 0), radius=1.0, layer="B"),
    ]
    features, stats = convert_entities(entities, context)

    assert [f.layer for f in features] == ["A", "B"]
    data = stats.to_dict()
    assert data["converted"] == {"LINE": 1, "CIRCLE": 1}
    assert data["skipped"] == {"LINE": 1}
    assert data["geometry_types"] == {"LineString": 1, "Polygon": 1}
    assert data["total_converted"] == 2
