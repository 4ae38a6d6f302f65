"""
DXF Views: Vorschau, Strukturanalyse und Layer-Liste für hochgeladene DXF-Dateien.
"""
import logging

from django.http import JsonResponse
from django.views import View

from apps.core.context import ImportContext
from apps.core.exceptions import GeoImportError
from apps.geo.services.crs import is_known_srid
from apps.geo.services.layers import filter_layers

from .services.parser import DXFReaderService
from .services.pipeline import preview_dxf

logger = logging.getLogger(__name__)


def _uploaded_dxf(request):
    """(uploaded_file, error_response)"""
    if "file" not in request.FILES:
        return None, JsonResponse({"error": "No file uploaded"}, status=400)
    uploaded_file = request.FILES["file"]
    if not uploaded_file.name.lower().endswith(".dxf"):
        return None, JsonResponse({"error": "Only DXF files allowed"}, status=400)
    return uploaded_file, None


def parse_srid(value):
    """EPSG code from a form/JSON value; None for blank, ValueError if invalid or unknown."""
    if value in (None, ""):
        return None
    srid = int(str(value).upper().removeprefix("EPSG:"))
    if srid <= 0 or not is_known_srid(srid):
        raise ValueError(f"Invalid EPSG code: {value}")
    return srid


class DXFPreviewView(View):
    """Upload DXF, return map preview (WGS84), layers, bounds and CRS guess."""

    def post(self, request):
        uploaded_file, error = _uploaded_dxf(request)
        if error:
            return error

        try:
            srid = parse_srid(request.POST.get("srid"))
        except ValueError:
            return JsonResponse({"error": "Invalid EPSG code"}, status=400)

        context = ImportContext(filename=uploaded_file.name)
        try:
            result = preview_dxf(
                uploaded_file.read(),
                context=context,
                srid_override=srid,
                visible_layers=request.POST.getlist("layers"),
            )
        except GeoImportError as e:
            logger.warning(f"DXF preview failed for {uploaded_file.name}: {e}")
            return JsonResponse({"error": e.message, "details": e.to_dict()}, status=400)

        return JsonResponse({
            "success": result["success"],
            "filename": uploaded_file.name,
            "import_id": context.import_id,
            "data": result["data"],
            "warnings": result["warnings"],
        })


class DXFParseView(View):
    """Parse DXF and return structured data (header, layers, blocks, statistics)."""

    def post(self, request):
        uploaded_file, error = _uploaded_dxf(request)
        if error:
            return error

        context = ImportContext(filename=uploaded_file.name)
        try:
            structure = DXFReaderService(context).read_bytes(uploaded_file.read())
        except GeoImportError as e:
            logger.warning(f"DXF parse failed for {uploaded_file.name}: {e}")
            return JsonResponse({"error": e.message, "details": e.to_dict()}, status=400)

        data = structure.to_dict()
        return JsonResponse({
            "success": True,
            "filename": uploaded_file.name,
            "dxf_version": data["dxf_version"],
            "units": data["units"],
            "source": data["source"],
            "statistics": data["statistics"],
            "layers": data["layers"],
            "blocks": sorted(structure.blocks),
            "warnings": [w["message"] for w in context.warnings],
        })


class DXFLayersAPIView(View):
    """Filtered layer names of an uploaded DXF."""

    def post(self, request):
        uploaded_file, error = _uploaded_dxf(request)
        if error:
            return error

        try:
            structure = DXFReaderService(
                ImportContext(filename=uploaded_file.name)
            ).read_bytes(uploaded_file.read())
        except GeoImportError as e:
            return JsonResponse({"error": e.message}, status=400)

        layers = filter_layers(structure.layer_names())
        return JsonResponse({"layers": layers, "count": len(layers)})
