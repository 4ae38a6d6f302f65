import uuid

import pytest

from apps.core.exceptions import ImportTransactionError
from apps.geo.models import FeatureCollection, Layer, PersistedFeature
from apps.geo.services.features import GeoFeature
from apps.geo.services.importer import import_geo_features

pytestmark = pytest.mark.django_db

BOWTIE = {
    "type": "Polygon",
    "coordinates": [[
        [2600000, 1200000], [2600010, 1200010], [2600010, 1200000],
        [2600000, 1200010], [2600000, 1200000],
    ]],
}


def test_import_creates_collection_layer_and_features(project_file, lv95_feature_dicts):
    result = import_geo_features(
        project_file.pk, "Gebäude", lv95_feature_dicts, source_srid=2056, batch_size=3,
    )

    assert result.imported_count == 10
    assert result.failed_count == 0

    collection = FeatureCollection.objects.get(pk=result.collection_id)
    assert collection.name == "Gebäude"
    assert collection.source_srid == 2056
    assert collection.target_srid == 4326
    assert collection.import_debug_info["repaired_count"] == 0
    assert Layer.objects.get(pk=result.layer_id).collection == collection
    assert collection.feature_count == 10


def test_result_unpacks_like_a_tuple(project_file, lv95_feature_dicts):
    collection_id, layer_id, imported, failed, debug_info = import_geo_features(
        project_file.pk, "Gebäude", lv95_feature_dicts[:2], source_srid=2056,
    )
    assert imported == 2
    assert failed == 0
    assert set(debug_info) == {
        "repaired_count", "cleaned_count", "skipped_count",
        "dimension_fixes", "feature_errors", "notices",
    }


def test_persisted_feature_fields(project_file, lv95_feature_dicts):
    result = import_geo_features(project_file.pk, "Gebäude", lv95_feature_dicts[:1], source_srid=2056)
    feature = PersistedFeature.objects.get(collection_id=result.collection_id)

    assert feature.feature_index == 0
    assert feature.original_srid == 2056
    assert feature.srid == 4326
    assert feature.original_geometry["coordinates"][0][0] == [2600000.0, 1200000.0]
    lon, lat = feature.geometry_wgs84["coordinates"][0][0]
    assert 6 < lon < 10 and 45 < lat < 48
    assert feature.properties["name"] == "Haus 0"
    assert feature.original_height == 540.0
    assert feature.height_source == "attribute:HOEHE"
    assert feature.vertical_datum_source == "LHN95"
    assert feature.base_elevation_ellipsoidal is None
    assert feature.height_transformation_status == "pending"


def test_invalid_features_do_not_abort_the_import(project_file, lv95_feature_dicts):
    features = lv95_feature_dicts[:8] + [
        {"type": "Feature", "geometry": BOWTIE, "properties": {}},
        {"type": "Feature", "geometry": None, "properties": {}},
    ]

    result = import_geo_features(project_file.pk, "Gebäude", features, source_srid=2056)

    assert result.imported_count == 9
    assert result.failed_count == 1
    assert result.debug_info["repaired_count"] == 1
    assert result.debug_info["skipped_count"] == 1
    [error] = result.debug_info["feature_errors"]
    assert error["feature_index"] == 9
    assert error["error_state"] == "GEO001"


def test_geo_features_are_accepted(project_file):
    features = [
        GeoFeature(geometry={"type": "Point", "coordinates": [8.54, 47.37]}, layer="Trees"),
    ]
    result = import_geo_features(project_file.pk, "Bäume", features, source_srid=4326)

    feature = PersistedFeature.objects.get(collection_id=result.collection_id)
    assert feature.properties == {"layer": "Trees"}
    assert feature.geometry == {"type": "Point", "coordinates": [8.54, 47.37]}


def test_wgs84_heights_are_ellipsoidal(project_file):
    features = [{"geometry": {"type": "Point", "coordinates": [8.54, 47.37, 455.0]}}]
    result = import_geo_features(project_file.pk, "Punkte", features, source_srid=4326)

    feature = PersistedFeature.objects.get(collection_id=result.collection_id)
    assert feature.height_source == "z_coord"
    assert feature.base_elevation_ellipsoidal == 455.0
    assert feature.height_mode == "absolute_ellipsoidal"
    assert len(feature.geometry_wgs84["coordinates"]) == 2


def test_mixed_dimensions_are_reported(project_file):
    features = [
        {"geometry": {"type": "Point", "coordinates": [2600000, 1200000, 500]}},
        {"geometry": {"type": "Point", "coordinates": [2600010, 1200010]}},
    ]
    result = import_geo_features(project_file.pk, "Punkte", features, source_srid=2056)

    assert result.debug_info["dimension_fixes"] == 1
    assert any(n["level"] == "warning" for n in result.debug_info["notices"])


def test_non_finite_properties_are_stored_as_null(project_file):
    features = [{
        "geometry": {"type": "Point", "coordinates": [8.5, 47.3]},
        "properties": {"area": float("nan"), "tags": ("a", "b")},
    }]
    result = import_geo_features(project_file.pk, "Punkte", features, source_srid=4326)

    feature = PersistedFeature.objects.get(collection_id=result.collection_id)
    assert feature.properties == {"area": None, "tags": ["a", "b"]}


def test_missing_project_file_raises():
    with pytest.raises(ImportTransactionError):
        import_geo_features(uuid.uuid4(), "Gebäude", [], source_srid=2056)
    assert not FeatureCollection.objects.exists()


def test_collapsed_polygon_is_rejected_not_fatal(project_file, lv95_feature_dicts):
    collapsed = {"type": "Polygon", "coordinates": [[[2600000, 1200000]] * 4]}
    features = lv95_feature_dicts[:9] + [{"type": "Feature", "geometry": collapsed, "properties": {}}]

    result = import_geo_features(project_file.pk, "Gebäude", features, source_srid=2056)

    assert result.imported_count == 9
    assert result.failed_count == 1
    [error] = result.debug_info["feature_errors"]
    assert error["feature_index"] == 9
    assert error["error_state"] == "GEO003"


@pytest.mark.parametrize("srids", [(99999, 4326), (2056, 99999)])
def test_unknown_epsg_code_raises_transaction_error(project_file, lv95_feature_dicts, srids):
    source_srid, target_srid = srids
    with pytest.raises(ImportTransactionError, match="Unknown EPSG code: 99999"):
        import_geo_features(
            project_file.pk, "Gebäude", lv95_feature_dicts[:1],
            source_srid=source_srid, target_srid=target_srid,
        )
    assert not FeatureCollection.objects.exists()
