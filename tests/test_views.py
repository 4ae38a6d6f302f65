import json
import uuid

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from apps.geo.models import FeatureCollection, ProjectFile


def dxf_upload(content, name="plan.dxf"):
    return SimpleUploadedFile(name, content, content_type="application/dxf")


def geojson_upload(document, name="trees.geojson"):
    return SimpleUploadedFile(name, json.dumps(document).encode("utf-8"), content_type="application/geo+json")


TREES = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "geometry": {"type": "Point", "coordinates": [8.5417, 47.3769]},
         "properties": {"layer": "Trees"}},
    ],
}


def test_liveness(client):
    response = client.get("/livez/")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.django_db
def test_readiness_reports_geo_stack(client):
    response = client.get("/healthz/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert set(body["checks"]) == {"database", "geos", "proj"}


def test_dxf_preview(client, lv95_building_dxf):
    response = client.post(reverse("dxf:dxf_preview"), {"file": dxf_upload(lv95_building_dxf)})

    assert response.status_code == 200
    body = response.json()
    assert body["filename"] == "plan.dxf"
    assert body["data"]["layers"] == ["0", "Building"]
    assert body["data"]["coordinate_system"]["srid"] == 2056


def test_dxf_preview_with_srid_and_layers(client, lv95_building_dxf):
    response = client.post(
        reverse("dxf:dxf_preview"),
        {"file": dxf_upload(lv95_building_dxf), "srid": "EPSG:2056", "layers": ["0"]},
    )
    data = response.json()["data"]

    assert data["coordinate_system"]["confidence"] == "exact"
    assert data["preview"]["visible_count"] == 0
    assert data["bounds"] == [-1, -1, 1, 1]


@pytest.mark.parametrize(
    "payload, error",
    [
        ({}, "No file uploaded"),
        ({"file": SimpleUploadedFile("plan.pdf", b"%PDF")}, "Only DXF files allowed"),
    ],
)
def test_dxf_preview_rejects_bad_uploads(client, payload, error):
    response = client.post(reverse("dxf:dxf_preview"), payload)
    assert response.status_code == 400
    assert response.json()["error"] == error


def test_dxf_preview_rejects_bad_srid(client, lv95_building_dxf):
    response = client.post(
        reverse("dxf:dxf_preview"), {"file": dxf_upload(lv95_building_dxf), "srid": "LV95"}
    )
    assert response.status_code == 400


def test_dxf_parse(client, lv95_building_dxf):
    response = client.post(reverse("dxf:dxf_parse"), {"file": dxf_upload(lv95_building_dxf)})

    body = response.json()
    assert body["dxf_version"] == "AC1015"
    assert body["statistics"]["entities"] == {"LWPOLYLINE": 1}
    assert [layer["name"] for layer in body["layers"]] == ["0", "Building"]


def test_dxf_layers(client, lv95_building_dxf):
    response = client.post(reverse("dxf:dxf_api_layers"), {"file": dxf_upload(lv95_building_dxf)})
    assert response.json() == {"layers": ["0", "Building"], "count": 2}


def test_geo_preview_geojson(client):
    response = client.post(reverse("geo:preview"), {"file": geojson_upload(TREES)})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["format"] == "geojson"
    assert data["preview"]["layer_counts"] == {"Trees": 1}


def test_geo_preview_rejects_kml(client):
    upload = SimpleUploadedFile("places.kml", b"<kml/>")
    response = client.post(reverse("geo:preview"), {"file": upload})

    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported format: .kml"


def test_geo_preview_reports_parse_errors(client):
    upload = SimpleUploadedFile("broken.geojson", b"{not json")
    response = client.post(reverse("geo:preview"), {"file": upload})

    assert response.status_code == 400
    assert response.json()["details"]["error"] == "ParseError"


@pytest.mark.django_db
def test_upload_and_status(client):
    response = client.post(reverse("geo:file_upload"), {"file": geojson_upload(TREES), "srid": "4326"})

    assert response.status_code == 201
    project_file = ProjectFile.objects.get(pk=response.json()["id"])
    assert project_file.file_format == "geojson"
    assert project_file.source_srid == 4326

    status = client.get(reverse("geo:file_status", kwargs={"pk": project_file.pk})).json()
    assert status["status"] == "uploaded"
    assert status["collections"] == []


@pytest.mark.django_db
def test_upload_with_import_runs_the_task(client):
    response = client.post(
        reverse("geo:file_upload"),
        {"file": geojson_upload(TREES), "srid": "4326", "import": "1", "collection_name": "Bäume"},
    )

    assert "task_id" in response.json()
    project_file = ProjectFile.objects.get(pk=response.json()["id"])
    assert project_file.status == ProjectFile.Status.IMPORTED
    assert project_file.collections.get().name == "Bäume"


@pytest.mark.django_db
def test_import_view_starts_the_task(client):
    response = client.post(reverse("geo:file_upload"), {"file": geojson_upload(TREES)})
    pk = response.json()["id"]

    response = client.post(
        reverse("geo:file_import", kwargs={"pk": pk}),
        data=json.dumps({"source_srid": 4326}),
        content_type="application/json",
    )

    assert response.status_code == 202
    assert ProjectFile.objects.get(pk=pk).status == ProjectFile.Status.IMPORTED


@pytest.mark.django_db
def test_import_view_unknown_file(client):
    response = client.post(
        reverse("geo:file_import", kwargs={"pk": uuid.uuid4()}),
        data="{}",
        content_type="application/json",
    )
    assert response.status_code == 404


@pytest.mark.django_db
def test_feature_import(client, project_file, lv95_feature_dicts):
    response = client.post(
        reverse("geo:feature_import"),
        data=json.dumps({
            "project_file_id": str(project_file.pk),
            "collection_name": "Gebäude",
            "features": lv95_feature_dicts,
            "source_srid": 2056,
            "batch_size": 4,
        }),
        content_type="application/json",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["imported_count"] == 10
    assert FeatureCollection.objects.get(pk=body["collection_id"]).feature_count == 10


@pytest.mark.django_db
@pytest.mark.parametrize(
    "payload, status",
    [
        ({"collection_name": "x", "features": [], "source_srid": 2056}, 400),
        ({"project_file_id": "nope", "collection_name": "x", "features": [], "source_srid": 2056}, 400),
        ({"project_file_id": str(uuid.uuid4()), "collection_name": "x", "features": {}, "source_srid": 2056}, 400),
        ({"project_file_id": str(uuid.uuid4()), "collection_name": "x", "features": [], "source_srid": 2056}, 400),
    ],
)
def test_feature_import_validation(client, payload, status):
    response = client.post(
        reverse("geo:feature_import"), data=json.dumps(payload), content_type="application/json"
    )
    assert response.status_code == status


def test_unknown_epsg_code_is_a_bad_request(client):
    response = client.post(reverse("geo:preview"), {"file": geojson_upload(TREES), "srid": "99999"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid EPSG code"


@pytest.mark.django_db
def test_feature_import_with_unknown_epsg_code(client, project_file, lv95_feature_dicts):
    response = client.post(
        reverse("geo:feature_import"),
        data=json.dumps({
            "project_file_id": str(project_file.pk),
            "collection_name": "Gebäude",
            "features": lv95_feature_dicts,
            "source_srid": 99999,
        }),
        content_type="application/json",
    )

    assert response.status_code == 400
    assert not FeatureCollection.objects.exists()
