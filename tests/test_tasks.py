import json
import uuid

import pytest
from django.core.files.base import ContentFile

from apps.core.exceptions import CoordinateSystemUnknown
from apps.geo.models import ProjectFile
from apps.geo.services.workflow import import_project_file
from apps.geo.tasks import process_geo_import
from dxf_builders import square

pytestmark = pytest.mark.django_db


def stored_file(document, name="parcels.geojson", source_srid=None):
    project_file = ProjectFile(name=name, source_srid=source_srid)
    project_file.file.save(name, ContentFile(json.dumps(document).encode("utf-8")), save=False)
    project_file.save()
    return project_file


def parcels(x=2600000, y=1200000):
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": square(x + i * 20, y), "properties": {"nr": i}}
            for i in range(3)
        ],
    }


def test_task_imports_with_stored_srid():
    project_file = stored_file(parcels(), source_srid=2056)

    result = process_geo_import(str(project_file.pk))

    project_file.refresh_from_db()
    assert project_file.status == ProjectFile.Status.IMPORTED
    assert project_file.file_format == "geojson"
    assert project_file.import_metadata["coordinate_system"]["confidence"] == "exact"
    assert project_file.import_metadata["layers"] == ["0", "parcels"]
    assert result["imported_count"] == 3
    assert project_file.collections.get().name == "parcels"


def test_task_through_delay():
    project_file = stored_file(parcels(), source_srid=2056)

    async_result = process_geo_import.delay(str(project_file.pk), collection_name="Parzellen")

    assert async_result.get()["imported_count"] == 3
    assert project_file.collections.get().name == "Parzellen"


def test_heuristic_guess_marks_the_file_as_error():
    project_file = stored_file(parcels())

    assert process_geo_import(str(project_file.pk)) is None

    project_file.refresh_from_db()
    assert project_file.status == ProjectFile.Status.ERROR
    assert "confirmed" in project_file.error_message
    assert project_file.import_metadata["error"]["error"] == "CoordinateSystemUnknown"
    assert not project_file.collections.exists()


def test_explicit_srid_confirms_the_guess():
    project_file = stored_file(parcels())
    result = process_geo_import(str(project_file.pk), source_srid=2056, target_srid=2056)

    assert result["imported_count"] == 3
    project_file.refresh_from_db()
    assert project_file.source_srid == 2056
    assert project_file.collections.get().target_srid == 2056


def test_header_hint_is_enough():
    document = {**parcels(), "crs": {"type": "name", "properties": {"name": "EPSG:2056"}}}
    project_file = stored_file(document)

    result = import_project_file(project_file.pk)

    assert result.imported_count == 3


def test_unknown_system_raises_in_workflow():
    project_file = stored_file(parcels(x=0, y=0))
    with pytest.raises(CoordinateSystemUnknown):
        import_project_file(project_file.pk)


def test_parse_errors_are_recorded():
    project_file = ProjectFile(name="broken.geojson")
    project_file.file.save("broken.geojson", ContentFile(b"{not json"), save=False)
    project_file.save()

    assert process_geo_import(str(project_file.pk)) is None

    project_file.refresh_from_db()
    assert project_file.status == ProjectFile.Status.ERROR
    assert project_file.error_message.startswith("Invalid JSON")


def test_missing_project_file_is_logged_and_ignored():
    assert process_geo_import(str(uuid.uuid4())) is None
