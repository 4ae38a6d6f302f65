"""Handler pipeline base classes."""
from .base import (
    BaseImportHandler,
    GeoFormat,
    HandlerError,
    HandlerResult,
    HandlerStatus,
    ImportPipeline,
)

__all__ = [
    "BaseImportHandler",
    "GeoFormat",
    "HandlerError",
    "HandlerResult",
    "HandlerStatus",
    "ImportPipeline",
]
