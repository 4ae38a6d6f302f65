"""
DXF Import Handlers

Lesen einer DXF-Datei und Umwandlung der Entities in GeoFeatures.
Die Koordinatensystem-, Bounds- und Layer-Stufen sind formatneutral
und liegen in apps.geo.handlers.
"""
import logging
from pathlib import Path

from apps.core.handlers import BaseImportHandler, HandlerResult, HandlerStatus

from ..services.converter import EntityConverter
from ..services.parser import DXFReaderService
from ..services.parser.models import DxfStructure

logger = logging.getLogger(__name__)


def structure_hints(structure: DxfStructure) -> list[str]:
    """
    Freitext, in dem ein Koordinatensystem genannt sein kann:
    Header-Variablen mit Textwert und XDATA-Strings aller Entities.
    """
    hints = [value for _, value in structure.header.string_values() if value.strip()]
    seen = set(hints)
    for entity in structure.entities:
        for app_name, items in entity.xdata.items():
            for text in (app_name, *(v for _, v in items if isinstance(v, str))):
                if text and text not in seen:
                    seen.add(text)
                    hints.append(text)
    return hints


class DxfReadHandler(BaseImportHandler):
    """
    Liest DXF-Inhalt in eine DxfStructure.

    Input:
        - content: bytes der DXF-Datei
        - dxf_path: alternativ ein Pfad

    Output:
        - _structure: DxfStructure
        - dxf: Version, Einheiten, Statistik, Layer (JSON)
        - parser_source: "parser" oder "ezdxf"
    """

    name = "DxfReadHandler"
    description = "Liest Group-Codes und Sections einer DXF-Datei"
    required_inputs = []
    optional_inputs = ["content", "dxf_path", "use_fallback"]

    def execute(self, input_data: dict) -> HandlerResult:
        result = HandlerResult(
            success=True,
            handler_name=self.name,
            status=HandlerStatus.RUNNING,
        )

        content = input_data.get("content")
        dxf_path = input_data.get("dxf_path")
        if content is None and not dxf_path:
            result.add_error("Keine DXF-Daten (content oder dxf_path)")
            return result

        reader = DXFReaderService(
            context=self.context,
            use_fallback=input_data.get("use_fallback", True),
        )
        if content is not None:
            structure = reader.read_bytes(content)
        else:
            structure = reader.read_file(Path(dxf_path))

        if structure.source != "parser":
            result.add_warning("DXF über ezdxf-Fallback gelesen")

        result.data = {
            "_structure": structure,
            "dxf": structure.to_dict(),
            "parser_source": structure.source,
        }
        result.status = HandlerStatus.SUCCESS
        return result


class EntityConversionHandler(BaseImportHandler):
    """
    Wandelt die Entities einer DxfStructure in GeoFeatures.

    Input:
        - _structure: DxfStructure (von DxfReadHandler)

    Output:
        - _features: list[GeoFeature]
        - _hints: Texte für die Koordinatensystem-Erkennung
        - conversion: ConversionStatistics als dict
    """

    name = "EntityConversionHandler"
    description = "Konvertiert DXF-Entities in GeoJSON-Geometrien"
    required_inputs = ["_structure"]
    optional_inputs = ["circle_segments", "arc_segments"]

    def execute(self, input_data: dict) -> HandlerResult:
        structure: DxfStructure = input_data["_structure"]
        converter = EntityConverter(
            context=self.context,
            circle_segments=input_data.get("circle_segments"),
            arc_segments=input_data.get("arc_segments"),
        )
        features = converter.convert_all(structure.entities)
        stats = converter.stats

        result = HandlerResult(success=True, handler_name=self.name)
        if stats.total_rejected:
            result.add_warning(
                f"{stats.total_rejected} Entities ohne Geometrie übersprungen"
            )
        if stats.unsupported:
            kinds = ", ".join(sorted(stats.unsupported))
            result.add_warning(f"Nicht unterstützte Entity-Typen: {kinds}")

        result.data = {
            "_features": features,
            "_hints": structure_hints(structure),
            "conversion": stats.to_dict(),
        }
        return result
