"""
Upload workflows: preview (no persistence) and import of a ProjectFile.

Usage:
    result = preview_upload(content, "plan.dxf", srid_override=2056)
    import_result = import_project_file(project_file.id)
"""
import logging
from pathlib import Path
from typing import Iterable, Optional

from apps.core.context import ImportContext
from apps.core.exceptions import CoordinateSystemUnknown
from apps.core.handlers import GeoFormat, ImportPipeline

from ..conf import import_setting
from ..handlers import LoadFileHandler, add_preview_stages
from ..models import ProjectFile
from .crs import CoordinateSystemDetector
from .importer import ImportResult, import_geo_features
from .loaders import load_bytes

logger = logging.getLogger(__name__)


def build_preview_pipeline(filename: str, context: ImportContext) -> ImportPipeline:
    """Format-specific load stages followed by the shared preview stages."""
    pipeline = ImportPipeline(context)
    if GeoFormat.from_extension(filename) == GeoFormat.DXF:
        from apps.dxf.services.pipeline import add_dxf_stages

        add_dxf_stages(pipeline)
    else:
        pipeline.add(LoadFileHandler())
    return add_preview_stages(pipeline)


def preview_upload(
    content: bytes,
    filename: str,
    context: Optional[ImportContext] = None,
    srid_override: Optional[int] = None,
    visible_layers: Optional[Iterable[str]] = None,
) -> dict:
    """Preview payload for any supported format; raises the failing stage's error."""
    context = context or ImportContext(filename=filename)
    pipeline = build_preview_pipeline(filename, context)
    pipeline.run({
        "content": content,
        "filename": filename,
        "srid_override": srid_override,
        "visible_layers": list(visible_layers or ()),
    })
    pipeline.raise_for_errors()

    result = pipeline.get_final_result()
    result["warnings"].extend(w["message"] for w in context.warnings)
    return result


def _read_content(project_file: ProjectFile) -> bytes:
    with project_file.file.open("rb") as f:
        return f.read()


def import_project_file(
    project_file_id,
    collection_name: Optional[str] = None,
    source_srid: Optional[int] = None,
    target_srid: Optional[int] = None,
    context: Optional[ImportContext] = None,
) -> ImportResult:
    """
    Load, detect the coordinate system and import one ProjectFile.

    An import needs a confirmed system: an explicit `source_srid`, the
    one stored on the ProjectFile, or a header/metadata hint. Heuristic
    and unknown guesses raise CoordinateSystemUnknown.
    """
    project_file = ProjectFile.objects.get(pk=project_file_id)
    filename = Path(project_file.file.name or project_file.name).name
    context = context or ImportContext(filename=filename)

    data = load_bytes(_read_content(project_file), filename, context)

    detector = CoordinateSystemDetector(context, import_setting("DETECTION_SAMPLE_SIZE"))
    guess = detector.detect(
        data.features,
        hints=data.hints,
        prj_wkt=data.prj_wkt,
        override=source_srid or project_file.source_srid,
    )
    if guess.requires_confirmation:
        raise CoordinateSystemUnknown(
            "Coordinate system must be confirmed before import",
            {"guess": guess.to_dict()},
        )

    result = import_geo_features(
        project_file.pk,
        collection_name or Path(filename).stem,
        data.features,
        source_srid=guess.require_srid(),
        target_srid=target_srid,
        context=context,
    )

    project_file.file_format = data.format.value
    project_file.source_srid = guess.srid
    project_file.import_metadata = {
        "coordinate_system": guess.to_dict(),
        "layers": data.layers,
        "load": data.metadata,
        "warnings": [w["message"] for w in context.warnings],
        "collection_id": str(result.collection_id),
    }
    project_file.save(update_fields=["file_format", "source_srid", "import_metadata", "updated_at"])
    return result
