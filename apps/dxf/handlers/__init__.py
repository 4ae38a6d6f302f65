# DXF handlers: read (group codes + sections), entity conversion.
from .dxf_import import DxfReadHandler, EntityConversionHandler, structure_hints

__all__ = [
    "DxfReadHandler",
    "EntityConversionHandler",
    "structure_hints",
]
