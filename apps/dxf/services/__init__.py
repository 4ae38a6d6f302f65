"""DXF services: parser/ (group codes, sections, ezdxf fallback), converter, pipeline."""
from .converter import ConversionStatistics, EntityConverter, convert_entities
from .parser import DXFReaderService, read_dxf

__all__ = [
    "ConversionStatistics",
    "DXFReaderService",
    "EntityConverter",
    "convert_entities",
    "read_dxf",
]
