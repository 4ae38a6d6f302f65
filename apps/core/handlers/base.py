"""
Base handler classes for geo import pipelines.

Provides BaseImportHandler, HandlerResult, HandlerError
and ImportPipeline, shared by the DXF and geo apps.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..context import ImportContext
from ..exceptions import GeoImportError


class GeoFormat(Enum):
    """Unterstützte Eingabeformate."""

    DXF = "dxf"
    GEOJSON = "geojson"
    SHAPEFILE = "shapefile"
    KML = "kml"
    GPX = "gpx"
    UNKNOWN = "unknown"

    @classmethod
    def from_extension(
        cls, filepath: Union[str, Path]
    ) -> "GeoFormat":
        ext = Path(filepath).suffix.lower()
        mapping = {
            ".dxf": cls.DXF,
            ".geojson": cls.GEOJSON,
            ".json": cls.GEOJSON,
            ".shp": cls.SHAPEFILE,
            ".zip": cls.SHAPEFILE,
            ".kml": cls.KML,
            ".gpx": cls.GPX,
        }
        return mapping.get(ext, cls.UNKNOWN)


class HandlerStatus(Enum):
    """Handler-Ausführungsstatus."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class HandlerResult:
    """Ergebnis eines Handler-Aufrufs."""

    success: bool
    handler_name: str
    status: HandlerStatus = HandlerStatus.SUCCESS
    data: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    execution_time_ms: float = 0.0
    exception: Optional[Exception] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now().isoformat()
    )

    def to_dict(self) -> dict:
        serializable_data = {
            k: v
            for k, v in self.data.items()
            if not k.startswith("_")
        }
        return {
            "success": self.success,
            "handler": self.handler_name,
            "status": self.status.value,
            "data": serializable_data,
            "errors": self.errors,
            "warnings": self.warnings,
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp,
        }

    def add_error(self, message: str):
        self.errors.append(message)
        self.success = False
        self.status = HandlerStatus.ERROR

    def add_warning(self, message: str):
        self.warnings.append(message)


class HandlerError(GeoImportError):
    """Exception für Handler-Fehler."""

    def __init__(
        self,
        message: str,
        handler_name: str = "",
        details: dict = None,
    ):
        self.handler_name = handler_name
        super().__init__(message, details)


class BaseImportHandler(ABC):
    """
    Basisklasse für alle Import Handler.

    Handler verarbeiten Geodaten in einer Pipeline:
    INPUT -> PROCESSING -> OUTPUT

    Der ImportContext (Logger, Warnungen, Optionen) wird explizit
    durchgereicht; Handler holen nichts aus globalem Zustand.
    """

    name: str = "BaseHandler"
    description: str = "Basisklasse für Import Handler"
    required_inputs: list = []
    optional_inputs: list = []

    def __init__(self, context: ImportContext = None):
        self.context = context or ImportContext()
        self._start_time: Optional[datetime] = None

    @property
    def logger(self):
        return self.context.logger

    @abstractmethod
    def execute(
        self, input_data: dict
    ) -> HandlerResult:
        pass

    def validate_input(
        self, input_data: dict
    ) -> tuple[bool, list[str]]:
        errors = []
        for required in self.required_inputs:
            if required not in input_data:
                errors.append(
                    f"Pflichtfeld fehlt: {required}"
                )
        return len(errors) == 0, errors

    def run(self, input_data: dict) -> HandlerResult:
        self._start_time = datetime.now()

        valid, errors = self.validate_input(input_data)
        if not valid:
            return HandlerResult(
                success=False,
                handler_name=self.name,
                status=HandlerStatus.ERROR,
                errors=errors,
            )

        try:
            self.logger.debug(
                "[%s] Starting execution...", self.name
            )
            result = self.execute(input_data)
            elapsed = (
                datetime.now() - self._start_time
            ).total_seconds() * 1000
            result.execution_time_ms = elapsed
            self.logger.info(
                "[%s] Completed in %.1fms",
                self.name,
                elapsed,
            )
            return result
        except GeoImportError as e:
            self.logger.error(
                "[%s] %s: %s",
                self.name,
                e.__class__.__name__,
                e.message,
            )
            return HandlerResult(
                success=False,
                handler_name=self.name,
                status=HandlerStatus.ERROR,
                errors=[e.message],
                exception=e,
            )
        except Exception as e:
            self.logger.exception(
                "[%s] Unexpected error: %s",
                self.name,
                e,
            )
            return HandlerResult(
                success=False,
                handler_name=self.name,
                status=HandlerStatus.ERROR,
                errors=[f"Unerwarteter Fehler: {e!s}"],
                exception=e,
            )

    def __repr__(self):
        cls = self.__class__.__name__
        return f"<{cls}(name={self.name})>"


class ImportPipeline:
    """Pipeline für sequentielle Handler-Ausführung."""

    def __init__(self, context: ImportContext = None):
        self.handlers: list[BaseImportHandler] = []
        self.context = context or ImportContext()
        self.results: list[HandlerResult] = []
        self.data: dict = {}

    def add(
        self, handler: BaseImportHandler
    ) -> "ImportPipeline":
        handler.context = self.context
        self.handlers.append(handler)
        return self

    def run(
        self, input_data: dict
    ) -> list[HandlerResult]:
        self.results = []
        current_data = dict(input_data)

        for handler in self.handlers:
            result = handler.run(current_data)
            self.results.append(result)

            if not result.success:
                self.context.logger.warning(
                    "Pipeline stopped at %s: %s",
                    handler.name,
                    result.errors,
                )
                break

            current_data.update(result.data)

        self.data = current_data
        return self.results

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results)

    def raise_for_errors(self):
        """Re-raise the exception of the first failed handler."""
        for result in self.results:
            if result.success:
                continue
            if result.exception is not None:
                raise result.exception
            raise HandlerError(
                "; ".join(result.errors) or "Handler failed",
                handler_name=result.handler_name,
            )

    def get_final_result(self) -> dict:
        combined = {
            "success": self.success,
            "handlers": [
                r.to_dict() for r in self.results
            ],
            "data": {},
            "errors": [],
            "warnings": [],
        }

        for result in self.results:
            serializable_data = {
                k: v
                for k, v in result.data.items()
                if not k.startswith("_")
            }
            combined["data"].update(serializable_data)
            combined["errors"].extend(result.errors)
            combined["warnings"].extend(result.warnings)

        return combined
