"""
Import-scoped context passed explicitly through every pipeline stage.

Replaces the process-wide log manager: each import gets its own logger
adapter (tagged with the import id) and its own warning list.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("apps.imports")


class ImportLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the import id."""

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("import_id", self.extra["import_id"])
        return f"[{self.extra['import_id']}] {msg}", kwargs


@dataclass
class ImportContext:
    """State owned by one import (one file, one preview session)."""

    filename: str = ""
    source_srid: Optional[int] = None
    target_srid: int = 4326
    import_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    warnings: list = field(default_factory=list)
    options: dict = field(default_factory=dict)

    def __post_init__(self):
        self.logger = ImportLoggerAdapter(logger, {"import_id": self.import_id})

    def warn(self, message: str, **details: Any):
        """Record a user-visible warning and log it."""
        self.warnings.append({"message": message, "details": details})
        self.logger.warning("%s %s", message, details if details else "")

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def __repr__(self):
        return f"<ImportContext(id={self.import_id}, file={self.filename!r})>"
