"""
Formatneutrale Pipeline-Stufen für Vorschau und Import.

    LoadFileHandler              content + filename -> _features, _hints, _prj_wkt
    CoordinateSystemHandler      _features -> _crs_guess
    ReprojectionHandler          _features + _crs_guess -> _preview_features (WGS84)
    LayerHandler                 -> layers
    BoundsHandler                _preview_features -> bounds
    PreviewHandler               _preview_features -> preview

DXF-Dateien ersetzen LoadFileHandler durch die Handler aus apps.dxf.handlers.
"""
import logging

from apps.core.handlers import BaseImportHandler, HandlerResult, ImportPipeline

from .conf import import_setting
from .services.bounds import calculate_bounds
from .services.crs import CoordinateSystemDetector, CoordinateSystemGuess, reproject_features
from .services.layers import filter_layers
from .services.loaders import load_bytes
from .services.preview import PreviewProjector, Visibility

logger = logging.getLogger(__name__)


class LoadFileHandler(BaseImportHandler):
    """
    Lädt GeoJSON oder Shapefile.

    Input:
        - content: bytes
        - filename: Dateiname (bestimmt das Format)

    Output:
        - _features, _hints, _prj_wkt
        - format, metadata
    """

    name = "LoadFileHandler"
    description = "Lädt Features aus GeoJSON/Shapefile"
    required_inputs = ["content", "filename"]
    optional_inputs = []

    def execute(self, input_data: dict) -> HandlerResult:
        data = load_bytes(input_data["content"], input_data["filename"], self.context)
        return HandlerResult(
            success=True,
            handler_name=self.name,
            data={
                "_features": data.features,
                "_hints": data.hints,
                "_prj_wkt": data.prj_wkt,
                "format": data.format.value,
                "metadata": data.metadata,
            },
        )


class CoordinateSystemHandler(BaseImportHandler):
    """
    Erkennt das Quell-Koordinatensystem.

    Input:
        - _features
        - _hints, _prj_wkt: Metadaten aus Header/.prj (optional)
        - srid_override: vom Benutzer gewählter EPSG-Code (optional)

    Output:
        - _crs_guess: CoordinateSystemGuess
        - coordinate_system: dict
    """

    name = "CoordinateSystemHandler"
    description = "Erkennt das Koordinatensystem der Features"
    required_inputs = ["_features"]
    optional_inputs = ["_hints", "_prj_wkt", "srid_override"]

    def execute(self, input_data: dict) -> HandlerResult:
        detector = CoordinateSystemDetector(
            context=self.context,
            sample_size=import_setting("DETECTION_SAMPLE_SIZE"),
        )
        guess = detector.detect(
            input_data["_features"],
            hints=input_data.get("_hints") or (),
            prj_wkt=input_data.get("_prj_wkt"),
            override=input_data.get("srid_override"),
        )

        result = HandlerResult(
            success=True,
            handler_name=self.name,
            data={"_crs_guess": guess, "coordinate_system": guess.to_dict()},
        )
        if guess.requires_confirmation:
            result.add_warning("Koordinatensystem bitte bestätigen")
        return result


class ReprojectionHandler(BaseImportHandler):
    """
    Transformiert die Vorschau-Features nach WGS84.

    Ist das Quellsystem unbekannt, bleibt die Vorschau in
    Quellkoordinaten. Die Anzahl ist auf PREVIEW_MAX_FEATURES begrenzt.

    Input:
        - _features, _crs_guess
        - preview_srid, max_features (optional)

    Output:
        - _preview_features
        - preview_srid: EPSG-Code der Vorschau oder None
        - truncated: True wenn Features abgeschnitten wurden
    """

    name = "ReprojectionHandler"
    description = "Transformiert Features in das Vorschau-Koordinatensystem"
    required_inputs = ["_features", "_crs_guess"]
    optional_inputs = ["preview_srid", "max_features"]

    def execute(self, input_data: dict) -> HandlerResult:
        result = HandlerResult(success=True, handler_name=self.name)
        guess: CoordinateSystemGuess = input_data["_crs_guess"]
        target = int(input_data.get("preview_srid") or import_setting("PREVIEW_SRID"))
        limit = int(input_data.get("max_features") or import_setting("PREVIEW_MAX_FEATURES"))

        features = list(input_data["_features"])
        truncated = len(features) > limit
        if truncated:
            result.add_warning(f"Vorschau auf {limit} von {len(features)} Features begrenzt")
            features = features[:limit]

        if guess.srid is None:
            result.add_warning("Koordinatensystem unbekannt, Vorschau in Quellkoordinaten")
            preview_srid = None
        else:
            before = len(features)
            features = reproject_features(features, guess.srid, target, self.context)
            if len(features) < before:
                result.add_warning(
                    f"{before - len(features)} Features ließen sich nicht transformieren"
                )
            preview_srid = target

        result.data = {
            "_preview_features": features,
            "preview_srid": preview_srid,
            "truncated": truncated,
        }
        return result


class LayerHandler(BaseImportHandler):
    """
    Gefilterte Layer-Namen aus Layer-Tabelle und Features.

    Input:
        - _features
        - _structure: DxfStructure (optional, liefert auch leere Layer)

    Output:
        - layers: list[str], "0" immer enthalten
    """

    name = "LayerHandler"
    description = "Filtert Layer-Namen"
    required_inputs = ["_features"]
    optional_inputs = ["_structure"]

    def execute(self, input_data: dict) -> HandlerResult:
        names = []
        structure = input_data.get("_structure")
        if structure is not None:
            names.extend(structure.layer_names())
        names.extend(feature.layer for feature in input_data["_features"])
        return HandlerResult(
            success=True,
            handler_name=self.name,
            data={"layers": filter_layers(names)},
        )


class BoundsHandler(BaseImportHandler):
    """
    Input:
        - _preview_features
        - visible_layers: Layer-Liste der UI (leer = alle, optional)

    Output:
        - bounds: [min_x, min_y, max_x, max_y]
    """

    name = "BoundsHandler"
    description = "Berechnet die Bounding Box der sichtbaren Features"
    required_inputs = ["_preview_features"]
    optional_inputs = ["visible_layers"]

    def execute(self, input_data: dict) -> HandlerResult:
        visibility = Visibility.from_layer_list(input_data.get("visible_layers"))
        bounds = calculate_bounds(input_data["_preview_features"], visibility)
        return HandlerResult(
            success=True,
            handler_name=self.name,
            data={"bounds": bounds.to_list()},
        )


class PreviewHandler(BaseImportHandler):
    """
    Kategorisiert die Vorschau-Features nach Geometrie und Layer.

    Input:
        - _preview_features
        - visible_layers (optional)

    Output:
        - _projector: PreviewProjector (für weitere Sichtbarkeits-Wechsel)
        - preview: PreviewProjection als dict
    """

    name = "PreviewHandler"
    description = "Erstellt die Kartenvorschau"
    required_inputs = ["_preview_features"]
    optional_inputs = ["visible_layers"]

    def execute(self, input_data: dict) -> HandlerResult:
        projector = PreviewProjector(input_data["_preview_features"])
        visibility = Visibility.from_layer_list(input_data.get("visible_layers"))
        projection = projector.project(visibility)
        return HandlerResult(
            success=True,
            handler_name=self.name,
            data={"_projector": projector, "preview": projection.to_dict()},
        )


def add_preview_stages(pipeline: ImportPipeline) -> ImportPipeline:
    """Hängt die formatneutralen Vorschau-Stufen an."""
    return (
        pipeline
        .add(CoordinateSystemHandler())
        .add(ReprojectionHandler())
        .add(LayerHandler())
        .add(BoundsHandler())
        .add(PreviewHandler())
    )
