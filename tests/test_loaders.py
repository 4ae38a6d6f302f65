import io
import json
import zipfile

import pytest
import shapefile
from pyproj import CRS

from apps.core.context import ImportContext
from apps.core.exceptions import ParseError, UnsupportedFormatError
from apps.core.handlers import GeoFormat
from apps.geo.services.crs import srid_from_wkt
from apps.geo.services.loaders import load_bytes, load_geojson, load_path
from dxf_builders import square


def geojson_bytes(document) -> bytes:
    return json.dumps(document).encode("utf-8")


def test_feature_collection_with_crs_member():
    document = {
        "type": "FeatureCollection",
        "crs": {"type": "name", "properties": {"name": "urn:ogc:def:crs:EPSG::2056"}},
        "features": [
            {"type": "Feature", "geometry": square(2600000, 1200000), "properties": {"layer": "Parcels"}},
            {"type": "Feature", "geometry": square(2600100, 1200000), "properties": {}},
            {"type": "Feature", "geometry": None, "properties": {}},
        ],
    }
    context = ImportContext()

    data = load_geojson(geojson_bytes(document), "grundstuecke.geojson", context)

    assert data.format is GeoFormat.GEOJSON
    assert [f.layer for f in data.features] == ["Parcels", "grundstuecke"]
    assert data.hints == ["urn:ogc:def:crs:EPSG::2056"]
    assert data.metadata == {"feature_count": 2, "skipped": 1}
    assert context.warnings[0]["details"] == {"index": 2}
    assert data.layers == ["0", "Parcels", "grundstuecke"]


def test_single_feature_and_bare_geometry():
    feature = {"type": "Feature", "geometry": square(0, 0), "properties": {"id": 1}}
    assert len(load_geojson(geojson_bytes(feature)).features) == 1

    data = load_geojson(geojson_bytes(square(0, 0)), "outline.json")
    assert data.features[0].layer == "outline"
    assert data.hints == []


def test_utf8_bom_is_accepted():
    content = b"\xef\xbb\xbf" + geojson_bytes(square(0, 0))
    assert len(load_geojson(content).features) == 1


@pytest.mark.parametrize(
    "content",
    [b"{not json", b"[1, 2]", geojson_bytes({"type": "Topology"}), b"\xff\xfe\x00"],
)
def test_invalid_geojson_raises_parse_error(content):
    with pytest.raises(ParseError):
        load_geojson(content)


def write_shapefile(directory, name="parcels", with_prj=True):
    base = directory / name
    with shapefile.Writer(str(base), shapeType=shapefile.POLYGON) as writer:
        writer.field("NAME", "C", size=40)
        writer.field("AREA", "N", decimal=2)
        writer.poly([[
            [2600000, 1200000], [2600000, 1200100], [2600100, 1200100],
            [2600100, 1200000], [2600000, 1200000],
        ]])
        writer.record("Parzelle 12", 10000.0)
    if with_prj:
        (directory / f"{name}.prj").write_text(CRS.from_epsg(2056).to_wkt())
    return base.with_suffix(".shp")


def zip_directory(directory) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for path in sorted(directory.iterdir()):
            archive.write(path, arcname=f"export/{path.name}")
    return buffer.getvalue()


def test_shapefile_from_path(tmp_path):
    shp_path = write_shapefile(tmp_path)

    data = load_path(shp_path)

    assert data.format is GeoFormat.SHAPEFILE
    [feature] = data.features
    assert feature.layer == "parcels"
    assert feature.geometry["type"] == "Polygon"
    assert feature.properties["NAME"] == "Parzelle 12"
    assert srid_from_wkt(data.prj_wkt) == 2056
    assert data.metadata["shape_type"] == "POLYGON"


def test_zipped_shapefile_upload(tmp_path):
    source = tmp_path / "source"
    source.mkdir()
    write_shapefile(source, with_prj=False)

    data = load_bytes(zip_directory(source), "upload.zip")

    assert len(data.features) == 1
    assert data.prj_wkt is None


def test_zip_without_shapefile_raises(tmp_path):
    source = tmp_path / "source"
    source.mkdir()
    (source / "readme.txt").write_text("nothing here")

    with pytest.raises(ParseError):
        load_bytes(zip_directory(source), "upload.zip")


@pytest.mark.parametrize("filename", ["track.gpx", "places.kml", "notes.txt"])
def test_unsupported_formats(filename):
    with pytest.raises(UnsupportedFormatError):
        load_bytes(b"<xml/>", filename)


def test_dxf_dispatches_to_the_dxf_pipeline(lv95_building_dxf):
    data = load_bytes(lv95_building_dxf, "plan.dxf")

    assert data.format is GeoFormat.DXF
    assert [f.layer for f in data.features] == ["Building"]
    assert data.metadata["conversion"]["total_converted"] == 1
