"""
Health endpoints for container orchestration.

These endpoints are exempt from authentication. The readiness probe
also reports whether the geo stack (GEOS via shapely, PROJ via pyproj)
is importable, since every import depends on it.

Registration in config/urls.py:
    urlpatterns = [
        path("livez/", liveness, name="health-liveness"),
        path("healthz/", readiness, name="health-readiness"),
    ]
"""
from django.db import connection
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET


@csrf_exempt
@require_GET
def liveness(request):
    """Liveness probe: Is the process alive?"""
    return JsonResponse({"status": "alive"})


@csrf_exempt
@require_GET
def readiness(request):
    """Readiness probe: Can we serve traffic?"""
    checks = {}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = str(e)
        return JsonResponse(
            {"status": "unhealthy", "checks": checks},
            status=503,
        )

    try:
        import pyproj
        import shapely

        checks["geos"] = shapely.geos_version_string
        checks["proj"] = pyproj.proj_version_str
    except ImportError as e:
        checks["geo_stack"] = str(e)
        return JsonResponse(
            {"status": "unhealthy", "checks": checks},
            status=503,
        )

    return JsonResponse({"status": "healthy", "checks": checks})
