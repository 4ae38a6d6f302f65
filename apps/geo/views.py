"""
Geo import views: preview, upload, import (JSON) and status.
"""
import json
import logging
import uuid
from pathlib import Path

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views import View

from apps.core.context import ImportContext
from apps.core.exceptions import GeoImportError
from apps.core.handlers import GeoFormat
from apps.dxf.views import parse_srid

from .models import ProjectFile
from .services.importer import import_geo_features
from .services.workflow import preview_upload

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = (GeoFormat.DXF, GeoFormat.GEOJSON, GeoFormat.SHAPEFILE)


def _json_body(request):
    """(data, error_response)"""
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError as e:
        return None, JsonResponse({"error": f"Invalid JSON: {e.msg}"}, status=400)
    if not isinstance(data, dict):
        return None, JsonResponse({"error": "JSON object expected"}, status=400)
    return data, None


def _uploaded_file(request):
    """(uploaded_file, format, error_response)"""
    if "file" not in request.FILES:
        return None, None, JsonResponse({"error": "No file uploaded"}, status=400)
    uploaded_file = request.FILES["file"]
    file_format = GeoFormat.from_extension(uploaded_file.name)
    if file_format not in SUPPORTED_FORMATS:
        return None, None, JsonResponse(
            {"error": f"Unsupported format: {Path(uploaded_file.name).suffix or uploaded_file.name}"},
            status=400,
        )
    return uploaded_file, file_format, None


class GeoPreviewView(View):
    """Upload DXF/GeoJSON/Shapefile (zip), return map preview without persisting."""

    def post(self, request):
        uploaded_file, _, error = _uploaded_file(request)
        if error:
            return error
        try:
            srid = parse_srid(request.POST.get("srid"))
        except ValueError:
            return JsonResponse({"error": "Invalid EPSG code"}, status=400)

        context = ImportContext(filename=uploaded_file.name)
        try:
            result = preview_upload(
                uploaded_file.read(),
                uploaded_file.name,
                context=context,
                srid_override=srid,
                visible_layers=request.POST.getlist("layers"),
            )
        except GeoImportError as e:
            logger.warning(f"Preview failed for {uploaded_file.name}: {e}")
            return JsonResponse({"error": e.message, "details": e.to_dict()}, status=400)

        return JsonResponse({
            "success": result["success"],
            "filename": uploaded_file.name,
            "import_id": context.import_id,
            "data": result["data"],
            "warnings": result["warnings"],
        })


class ProjectFileUploadView(View):
    """Store an upload as ProjectFile; `import=1` starts the background import."""

    def post(self, request):
        uploaded_file, file_format, error = _uploaded_file(request)
        if error:
            return error
        try:
            srid = parse_srid(request.POST.get("srid"))
        except ValueError:
            return JsonResponse({"error": "Invalid EPSG code"}, status=400)

        project_file = ProjectFile.objects.create(
            name=uploaded_file.name,
            file=uploaded_file,
            file_format=file_format.value,
            source_srid=srid,
        )
        logger.info(f"Stored {project_file.name} as {project_file.pk}")

        response = {"id": str(project_file.pk), "status": project_file.status}
        if request.POST.get("import") in ("1", "true", "on"):
            from .tasks import process_geo_import

            task = process_geo_import.delay(
                str(project_file.pk),
                collection_name=request.POST.get("collection_name") or None,
            )
            response["task_id"] = task.id
        return JsonResponse(response, status=201)


class ProjectFileImportView(View):
    """Start the import of a stored ProjectFile (JSON: collection_name, source_srid, target_srid)."""

    def post(self, request, pk):
        project_file = get_object_or_404(ProjectFile, pk=pk)
        data, error = _json_body(request)
        if error:
            return error
        try:
            source_srid = parse_srid(data.get("source_srid"))
            target_srid = parse_srid(data.get("target_srid"))
        except ValueError:
            return JsonResponse({"error": "Invalid EPSG code"}, status=400)

        from .tasks import process_geo_import

        task = process_geo_import.delay(
            str(project_file.pk),
            collection_name=data.get("collection_name") or None,
            source_srid=source_srid,
            target_srid=target_srid,
        )
        return JsonResponse({"id": str(project_file.pk), "task_id": task.id}, status=202)


class ProjectFileStatusView(View):
    """Status, metadata and collections of a ProjectFile."""

    def get(self, request, pk):
        project_file = get_object_or_404(ProjectFile, pk=pk)
        return JsonResponse({
            "id": str(project_file.pk),
            "name": project_file.name,
            "format": project_file.file_format,
            "status": project_file.status,
            "source_srid": project_file.source_srid,
            "error_message": project_file.error_message,
            "metadata": project_file.import_metadata,
            "collections": [
                {
                    "id": str(collection.pk),
                    "name": collection.name,
                    "feature_count": collection.feature_count,
                    "debug_info": collection.import_debug_info,
                }
                for collection in project_file.collections.all()
            ],
        })


class FeatureImportView(View):
    """
    Import GeoJSON features synchronously.

    Body: {project_file_id, collection_name, features, source_srid,
    target_srid?, batch_size?}
    """

    def post(self, request):
        data, error = _json_body(request)
        if error:
            return error

        missing = [k for k in ("project_file_id", "collection_name", "features", "source_srid") if k not in data]
        if missing:
            return JsonResponse({"error": f"Missing fields: {', '.join(missing)}"}, status=400)
        if not isinstance(data["features"], list):
            return JsonResponse({"error": "features must be a list"}, status=400)

        try:
            project_file_id = uuid.UUID(str(data["project_file_id"]))
            source_srid = parse_srid(data["source_srid"])
            target_srid = parse_srid(data.get("target_srid"))
            batch_size = int(data["batch_size"]) if data.get("batch_size") else None
        except (TypeError, ValueError):
            return JsonResponse({"error": "Invalid project_file_id, EPSG code or batch size"}, status=400)
        if source_srid is None:
            return JsonResponse({"error": "source_srid is required"}, status=400)

        try:
            result = import_geo_features(
                project_file_id,
                data["collection_name"],
                data["features"],
                source_srid=source_srid,
                target_srid=target_srid,
                batch_size=batch_size,
                context=ImportContext(filename=str(data["collection_name"])),
            )
        except GeoImportError as e:
            logger.error(f"Feature import failed: {e.message}")
            return JsonResponse({"error": e.message, "details": e.to_dict()}, status=400)

        return JsonResponse(result.to_dict(), status=201)
