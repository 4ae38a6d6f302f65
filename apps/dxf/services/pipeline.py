"""
DXF import pipeline.

    raw bytes -> DxfReadHandler -> EntityConversionHandler
              -> CoordinateSystemHandler -> ReprojectionHandler
              -> LayerHandler -> BoundsHandler -> PreviewHandler

Usage:
    data = load_dxf(content, context)          # features for the importer
    result = preview_dxf(content, context)     # JSON payload for the map
"""
import logging
from typing import Iterable, Optional

from apps.core.context import ImportContext
from apps.core.handlers import GeoFormat, ImportPipeline
from apps.geo.handlers import add_preview_stages
from apps.geo.services.loaders import LoadedData

from ..handlers import DxfReadHandler, EntityConversionHandler

logger = logging.getLogger(__name__)


def add_dxf_stages(pipeline: ImportPipeline) -> ImportPipeline:
    return pipeline.add(DxfReadHandler()).add(EntityConversionHandler())


def load_dxf(content: bytes, context: Optional[ImportContext] = None) -> LoadedData:
    """
    Read and convert a DXF file. Raises the first stage's error
    (ParseError, SectionParseError, ...).
    """
    context = context or ImportContext()
    pipeline = add_dxf_stages(ImportPipeline(context))
    pipeline.run({"content": content})
    pipeline.raise_for_errors()

    data = pipeline.data
    structure = data["_structure"]
    return LoadedData(
        format=GeoFormat.DXF,
        features=data["_features"],
        hints=data["_hints"],
        metadata={
            "dxf": data["dxf"],
            "conversion": data["conversion"],
            "layer_names": structure.layer_names(),
        },
    )


def preview_dxf(
    content: bytes,
    context: Optional[ImportContext] = None,
    srid_override: Optional[int] = None,
    visible_layers: Optional[Iterable[str]] = None,
) -> dict:
    """
    Full preview for one DXF upload: structure, statistics,
    coordinate system, layers, bounds and categorised features.
    """
    context = context or ImportContext()
    pipeline = add_preview_stages(add_dxf_stages(ImportPipeline(context)))
    pipeline.run({
        "content": content,
        "srid_override": srid_override,
        "visible_layers": list(visible_layers or ()),
    })
    pipeline.raise_for_errors()

    result = pipeline.get_final_result()
    result["warnings"].extend(w["message"] for w in context.warnings)
    return result
