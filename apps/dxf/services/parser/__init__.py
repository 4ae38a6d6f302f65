"""DXF parser: group-code reader, section parsers, ezdxf fallback."""
from .group_codes import GroupCodePair, iter_group_codes, read_group_codes
from .models import DxfBlock, DxfHeader, DxfLayer, DxfStructure, DXFPoint, EntityKind
from .reader import DXFReaderService, read_dxf
from .sections import parse_structure

__all__ = [
    "DXFPoint",
    "DXFReaderService",
    "DxfBlock",
    "DxfHeader",
    "DxfLayer",
    "DxfStructure",
    "EntityKind",
    "GroupCodePair",
    "iter_group_codes",
    "parse_structure",
    "read_dxf",
    "read_group_codes",
]
