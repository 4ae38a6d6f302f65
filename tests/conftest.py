from __future__ import annotations

from typing import Callable

import pytest

from apps.core.context import ImportContext
from apps.geo.services.features import GeoFeature
from dxf_builders import dxf_document, lv95_building, square


@pytest.fixture
def context() -> ImportContext:
    return ImportContext(filename="test.dxf")


@pytest.fixture
def lv95_building_dxf() -> bytes:
    return lv95_building()


@pytest.fixture
def empty_dxf() -> bytes:
    return dxf_document().encode("utf-8")


@pytest.fixture
def make_feature() -> Callable[..., GeoFeature]:
    def factory(geometry: dict, layer: str = "0", **properties) -> GeoFeature:
        return GeoFeature(geometry=geometry, properties={"layer": layer, **properties}, layer=layer)

    return factory


@pytest.fixture
def project_file(db):
    from apps.geo.models import ProjectFile

    return ProjectFile.objects.create(name="plan.geojson", file_format=ProjectFile.Format.GEOJSON)


@pytest.fixture
def lv95_feature_dicts() -> list[dict]:
    """Ten GeoJSON building footprints in LV95."""
    features = []
    for index in range(10):
        x = 2600000.0 + index * 50
        geometry = square(x, 1200000.0, 20.0)
        features.append({
            "type": "Feature",
            "geometry": geometry,
            "properties": {"name": f"Haus {index}", "HOEHE": 540.0 + index},
        })
    return features


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
