# apps/geo/tasks.py
"""
Background Tasks für den Geodaten-Import

- Lädt die ProjectFile (DXF, GeoJSON, Shapefile)
- Erkennt das Koordinatensystem (oder nutzt das gewählte)
- Importiert die Features in FeatureCollection/Layer
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def process_geo_import(
    self,
    project_file_id: str,
    collection_name: str = None,
    source_srid: int = None,
    target_srid: int = None,
):
    """
    Importiert eine hochgeladene Geodaten-Datei.

    Returns:
        ImportResult als dict, oder None wenn die Datei fehlt oder der
        Import fehlschlägt (Status ERROR, Meldung in error_message).
    """
    from apps.core.context import ImportContext
    from apps.core.exceptions import GeoImportError

    from .models import ProjectFile
    from .services.workflow import import_project_file

    try:
        project_file = ProjectFile.objects.get(pk=project_file_id)
    except ProjectFile.DoesNotExist:
        logger.error(f"ProjectFile {project_file_id} not found")
        return None

    project_file.status = ProjectFile.Status.PROCESSING
    project_file.error_message = ""
    project_file.save(update_fields=["status", "error_message", "updated_at"])
    logger.info(f"Processing geo import: {project_file_id}")

    context = ImportContext(filename=project_file.name)
    try:
        result = import_project_file(
            project_file_id,
            collection_name=collection_name,
            source_srid=source_srid,
            target_srid=target_srid,
            context=context,
        )
    except GeoImportError as e:
        logger.error(f"Import {project_file_id} failed: {e.message}")
        _mark_error(project_file_id, e.message, e.to_dict())
        return None
    except Exception as e:
        logger.exception(f"Processing error: {e}")
        _mark_error(project_file_id, str(e), {"error": e.__class__.__name__})
        raise

    ProjectFile.objects.filter(pk=project_file_id).update(
        status=ProjectFile.Status.IMPORTED
    )
    logger.info(
        f"Imported {project_file_id}: {result.imported_count} features, "
        f"{result.failed_count} failed"
    )
    return result.to_dict()


def _mark_error(project_file_id, message: str, details: dict):
    from .models import ProjectFile

    project_file = ProjectFile.objects.get(pk=project_file_id)
    project_file.status = ProjectFile.Status.ERROR
    project_file.error_message = message
    project_file.import_metadata = {**project_file.import_metadata, "error": details}
    project_file.save(update_fields=["status", "error_message", "import_metadata", "updated_at"])
