"""
Import settings with defaults.

Projects override single keys through settings.GEO_IMPORT:

    GEO_IMPORT = {"BATCH_SIZE": 500}
"""
from django.conf import settings

DEFAULTS = {
    "BATCH_SIZE": 100,
    "TARGET_SRID": 4326,
    "PREVIEW_SRID": 4326,
    "DETECTION_SAMPLE_SIZE": 1000,
    "PREVIEW_MAX_FEATURES": 5000,
    "CIRCLE_SEGMENTS": 64,
    "ARC_SEGMENTS": 32,
}


def import_setting(name: str):
    """Return GEO_IMPORT[name], falling back to the built-in default."""
    overrides = getattr(settings, "GEO_IMPORT", {}) or {}
    if name in overrides:
        return overrides[name]
    try:
        return DEFAULTS[name]
    except KeyError:
        raise KeyError(f"Unknown GEO_IMPORT setting: {name}") from None
