"""
DXF Reader Service

Reads DXF content into a DxfStructure with the group-code reader and
section parsers; falls back to ezdxf recover mode for binary DXF and
for files the parser rejects.
"""
import logging
from pathlib import Path
from typing import Optional

import ezdxf

from apps.core.context import ImportContext
from apps.core.exceptions import ParseError, SectionParseError

from . import ezdxf_fallback
from .group_codes import BINARY_SENTINEL, read_group_codes
from .models import DxfStructure
from .sections import parse_structure

logger = logging.getLogger(__name__)

# Encodings tried in order; pre-2007 DXF is written in the ANSI codepage
ENCODINGS = ("utf-8", "cp1252")


def decode_dxf(content: bytes) -> str:
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


class DXFReaderService:
    """
    Service for reading DXF files into DxfStructure.

    Usage:
        reader = DXFReaderService()
        structure = reader.read_file("drawing.dxf")

        for entity in structure.entities:
            print(entity.dxftype, entity.layer)
    """

    def __init__(self, context: Optional[ImportContext] = None, use_fallback: bool = True):
        self.context = context or ImportContext()
        self.use_fallback = use_fallback

    def read_file(self, filepath: str | Path) -> DxfStructure:
        """Read a DXF file from disk."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"DXF file not found: {filepath}")

        self.context.logger.info("Reading DXF file: %s", filepath.name)
        return self.read_bytes(filepath.read_bytes())

    def read_bytes(self, content: bytes) -> DxfStructure:
        """Read DXF content from bytes (text or binary DXF)."""
        if content[:32].startswith(BINARY_SENTINEL.encode("ascii")):
            if not self.use_fallback:
                raise ParseError("Binary DXF is not readable as text", line=1)
            self.context.logger.info("Binary DXF detected, using ezdxf")
            try:
                return ezdxf_fallback.read_structure(content)
            except ezdxf.DXFError as e:
                raise ParseError(f"Binary DXF could not be read: {e}", line=1) from e

        return self._read(decode_dxf(content), content)

    def read_text(self, text: str) -> DxfStructure:
        """Read already decoded DXF text."""
        return self._read(text, None)

    def _read(self, text: str, content: Optional[bytes]) -> DxfStructure:
        try:
            structure = parse_structure(read_group_codes(text))
        except (ParseError, SectionParseError) as e:
            if not self.use_fallback:
                raise
            self.context.warn(
                "DXF parser failed, retrying with ezdxf recover mode",
                error=e.message,
            )
            if content is None:
                content = text.encode("utf-8")
            try:
                structure = ezdxf_fallback.read_structure(content)
            except ezdxf.DXFError:
                raise e from None

        self.context.logger.info(
            "Read %d entities, %d layers, %d blocks (%s)",
            len(structure.entities),
            len(structure.layers),
            len(structure.blocks),
            structure.source,
        )
        return structure


def read_dxf(content: bytes, context: Optional[ImportContext] = None) -> DxfStructure:
    """Convenience function for reading DXF bytes."""
    return DXFReaderService(context).read_bytes(content)
