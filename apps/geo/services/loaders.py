"""
Format loaders: file -> LoadedData (features + metadata for CRS detection).

    data = load_path("parcels.zip", context)
    guess = CoordinateSystemDetector(context).detect(
        data.features, hints=data.hints, prj_wkt=data.prj_wkt
    )

DXF goes through the DXF pipeline; GeoJSON and Shapefile are read here.
KML and GPX are not supported.
"""
import json
import logging
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import shapefile

from apps.core.context import ImportContext
from apps.core.exceptions import ParseError, UnsupportedFormatError
from apps.core.handlers import GeoFormat

from .features import GeoFeature
from .layers import filter_layers

logger = logging.getLogger(__name__)

SHAPEFILE_PARTS = (".shp", ".shx", ".dbf", ".prj", ".cpg")


@dataclass
class LoadedData:
    """Features of one file plus what CRS detection needs."""
    format: GeoFormat
    features: list = field(default_factory=list)
    hints: list = field(default_factory=list)
    prj_wkt: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def layers(self) -> list[str]:
        return filter_layers(f.layer for f in self.features)


# ---------------------------------------------------------------------------
# GeoJSON
# ---------------------------------------------------------------------------

def _crs_hint(document: dict) -> Optional[str]:
    """Legacy GeoJSON 'crs' member, e.g. urn:ogc:def:crs:EPSG::2056."""
    crs = document.get("crs")
    if isinstance(crs, dict):
        name = (crs.get("properties") or {}).get("name")
        if name:
            return str(name)
    return None


def load_geojson(content: bytes, filename: str = "upload.geojson",
                 context: Optional[ImportContext] = None) -> LoadedData:
    context = context or ImportContext(filename=filename)
    try:
        document = json.loads(content.decode("utf-8-sig"))
    except UnicodeDecodeError as e:
        raise ParseError(f"GeoJSON is not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg}", line=e.lineno) from e

    if not isinstance(document, dict):
        raise ParseError("GeoJSON root must be an object")

    kind = document.get("type")
    if kind == "FeatureCollection":
        raw_features = document.get("features") or []
    elif kind == "Feature":
        raw_features = [document]
    elif kind in ("Point", "MultiPoint", "LineString", "MultiLineString",
                  "Polygon", "MultiPolygon", "GeometryCollection"):
        raw_features = [{"type": "Feature", "geometry": document, "properties": {}}]
    else:
        raise ParseError(f"Unknown GeoJSON type: {kind!r}")

    default_layer = Path(filename).stem or "0"
    features = []
    for index, raw in enumerate(raw_features):
        if not isinstance(raw, dict) or not raw.get("geometry"):
            context.warn("GeoJSON feature without geometry skipped", index=index)
            continue
        features.append(GeoFeature.from_geojson(raw, default_layer=default_layer))

    hint = _crs_hint(document)
    context.logger.info("GeoJSON: %d features", len(features))
    return LoadedData(
        format=GeoFormat.GEOJSON,
        features=features,
        hints=[hint] if hint else [],
        metadata={"feature_count": len(features), "skipped": len(raw_features) - len(features)},
    )


# ---------------------------------------------------------------------------
# Shapefile
# ---------------------------------------------------------------------------

def _read_shapefile(shp_path: Path, context: ImportContext) -> LoadedData:
    layer = shp_path.stem
    prj_path = shp_path.with_suffix(".prj")
    prj_wkt = prj_path.read_text(errors="replace") if prj_path.exists() else None

    cpg_path = shp_path.with_suffix(".cpg")
    encoding = cpg_path.read_text().strip() if cpg_path.exists() else "utf-8"

    features = []
    try:
        with shapefile.Reader(str(shp_path), encoding=encoding, encodingErrors="replace") as sf:
            shape_type = sf.shapeTypeName
            for index, shape_rec in enumerate(sf.iterShapeRecords()):
                if shape_rec.shape.shapeType == shapefile.NULL:
                    context.warn("Null shape skipped", index=index)
                    continue
                properties = shape_rec.record.as_dict(date_strings=True)
                properties.setdefault("layer", layer)
                features.append(GeoFeature(
                    geometry=shape_rec.shape.__geo_interface__,
                    properties=properties,
                    layer=layer,
                ))
    except shapefile.ShapefileException as e:
        raise ParseError(f"Unreadable shapefile {shp_path.name}: {e}") from e

    context.logger.info("Shapefile %s: %d features (%s)", layer, len(features), shape_type)
    return LoadedData(
        format=GeoFormat.SHAPEFILE,
        features=features,
        prj_wkt=prj_wkt,
        metadata={"shape_type": shape_type, "feature_count": len(features)},
    )


def load_shapefile(path: Path, context: Optional[ImportContext] = None) -> LoadedData:
    """Read a .shp (with sibling .dbf/.shx/.prj) or a zip containing one."""
    path = Path(path)
    context = context or ImportContext(filename=path.name)

    if path.suffix.lower() != ".zip":
        return _read_shapefile(path, context)

    with tempfile.TemporaryDirectory() as tmp:
        with zipfile.ZipFile(path) as archive:
            members = [
                name for name in archive.namelist()
                if Path(name).suffix.lower() in SHAPEFILE_PARTS
                and not Path(name).name.startswith(".")
            ]
            for name in members:
                target = Path(tmp) / Path(name).name
                target.write_bytes(archive.read(name))

        shp_files = sorted(p for p in Path(tmp).iterdir() if p.suffix.lower() == ".shp")
        if not shp_files:
            raise ParseError(f"No .shp file found in {path.name}")
        if len(shp_files) > 1:
            context.warn("Archive contains several shapefiles, using the first", files=[p.name for p in shp_files])
        return _read_shapefile(shp_files[0], context)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def load_bytes(content: bytes, filename: str, context: Optional[ImportContext] = None) -> LoadedData:
    """Load uploaded content, dispatching on the file extension."""
    context = context or ImportContext(filename=filename)
    file_format = GeoFormat.from_extension(filename)

    if file_format == GeoFormat.DXF:
        from apps.dxf.services.pipeline import load_dxf

        return load_dxf(content, context)

    if file_format == GeoFormat.GEOJSON:
        return load_geojson(content, filename, context)

    if file_format == GeoFormat.SHAPEFILE:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / Path(filename).name
            path.write_bytes(content)
            return load_shapefile(path, context)

    raise UnsupportedFormatError(
        f"Format {file_format.value!r} is not supported for import",
        {"filename": filename, "format": file_format.value},
    )


def load_path(path, context: Optional[ImportContext] = None) -> LoadedData:
    """Load a file from disk."""
    path = Path(path)
    context = context or ImportContext(filename=path.name)
    if GeoFormat.from_extension(path) == GeoFormat.SHAPEFILE:
        return load_shapefile(path, context)
    return load_bytes(path.read_bytes(), path.name, context)
