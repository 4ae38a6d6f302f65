"""
Error taxonomy for the geo import pipeline.

Per-entity and per-feature errors (EntityConversionError, GeometryValidityError)
are isolated by the caller and aggregated into statistics. Structural and
transaction errors propagate with the offending line/index attached.
"""
from typing import Optional


class GeoImportError(Exception):
    """Base class for all import errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParseError(GeoImportError):
    """Malformed group-code stream."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message, {"line": line})


class SectionParseError(GeoImportError):
    """Structural DXF violation inside (or between) sections."""

    def __init__(self, message: str, section: str = "", line: Optional[int] = None):
        self.section = section
        self.line = line
        location = f"section {section or '?'}"
        if line is not None:
            location += f", line {line}"
        super().__init__(
            f"{message} ({location})",
            {"section": section, "line": line},
        )


class EntityConversionError(GeoImportError):
    """A single entity could not be turned into a feature. Non-fatal."""

    def __init__(self, message: str, entity_type: str = "", handle: Optional[str] = None):
        self.entity_type = entity_type
        self.handle = handle
        super().__init__(message, {"entity_type": entity_type, "handle": handle})


class CoordinateSystemUnknown(GeoImportError):
    """Detection ended without a usable system; explicit user input is required."""


class GeometryValidityError(GeoImportError):
    """A feature geometry is invalid and could not be repaired. Non-fatal."""

    def __init__(self, message: str, reason: str = "", error_state: str = "GEO003"):
        self.reason = reason
        self.error_state = error_state
        super().__init__(message, {"invalid_reason": reason, "error_state": error_state})


class ImportTransactionError(GeoImportError):
    """Fatal persistence error; the whole import is rolled back."""


class UnsupportedFormatError(GeoImportError):
    """The uploaded file format is not handled by any loader."""


class MissingAttributeError(EntityConversionError):
    """Entity lacks a required attribute (layer, vertices, center). Counted as skipped."""
