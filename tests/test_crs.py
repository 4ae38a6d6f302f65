import pytest
from pyproj import CRS
from shapely.geometry import Point

from apps.core.context import ImportContext
from apps.core.exceptions import CoordinateSystemUnknown
from apps.geo.services.crs import (
    LV03,
    LV95,
    WGS84,
    Confidence,
    CoordinateSystemDetector,
    CoordinateSystemGuess,
    find_srid_hint,
    is_known_srid,
    is_plausible,
    reproject_features,
    srid_from_wkt,
    transform_geometry,
    transform_shape,
)
from dxf_builders import LV95_SQUARE, square


def polygon_features(make_feature, points):
    ring = [list(p) for p in points] + [list(points[0])]
    return [make_feature({"type": "Polygon", "coordinates": [ring]})]


@pytest.fixture
def lv95_features(make_feature):
    return polygon_features(make_feature, LV95_SQUARE)


@pytest.fixture
def detector():
    return CoordinateSystemDetector(ImportContext())


def test_override_wins(detector, lv95_features):
    guess = detector.detect(lv95_features, hints=["EPSG:4326"], override=21781)

    assert guess.srid == LV03
    assert guess.confidence is Confidence.EXACT
    assert not guess.requires_confirmation


def test_plausible_header_hint(detector, lv95_features):
    guess = detector.detect(lv95_features, hints=["Projekt Bern", "EPSG:2056"])

    assert guess.srid == LV95
    assert guess.confidence is Confidence.HEADER
    assert guess.name == "CH1903+ / LV95"
    assert not guess.requires_confirmation


def test_implausible_hint_is_rejected(make_feature):
    context = ImportContext()
    features = polygon_features(make_feature, [(8.51, 47.36), (8.52, 47.36), (8.52, 47.37)])

    guess = CoordinateSystemDetector(context).detect(features, hints=["EPSG:2056"])

    assert guess.srid == WGS84
    assert guess.confidence is Confidence.HEURISTIC
    assert guess.requires_confirmation
    assert context.warnings[0]["details"]["srid"] == LV95


def test_lv95_heuristic(detector, lv95_features):
    guess = detector.detect(lv95_features)
    assert guess.srid == LV95
    assert guess.confidence is Confidence.HEURISTIC
    assert guess.method == "point_heuristic"


def test_lv03_heuristic(detector, make_feature):
    features = polygon_features(make_feature, [(600000, 200000), (600100, 200000), (600100, 200100)])
    assert detector.detect(features).srid == LV03


def test_small_integer_coordinates_are_unknown(detector, make_feature):
    features = [make_feature(square(0, 0, 50))]

    guess = detector.detect(features)

    assert guess.confidence is Confidence.UNKNOWN
    assert guess.srid is None
    with pytest.raises(CoordinateSystemUnknown):
        guess.require_srid()


def test_no_features_is_unknown(detector):
    assert detector.detect([]).confidence is Confidence.UNKNOWN


def test_hint_without_points_is_accepted(detector):
    guess = detector.detect([], hints=["LV95"])
    assert guess.srid == LV95
    assert guess.confidence is Confidence.HEADER


def test_prj_wkt_is_used(detector, lv95_features):
    guess = detector.detect(lv95_features, prj_wkt=CRS.from_epsg(2056).to_wkt())
    assert guess.srid == LV95
    assert "projection file" in guess.details


@pytest.mark.parametrize(
    "text, srid",
    [
        ("EPSG:2056", 2056),
        ("epsg 21781", 21781),
        ("CH1903+ / LV95", 2056),
        ("Landeskoordinaten LV03", 21781),
        ("WGS-84", 4326),
        ("Plan 1:500", None),
        ("", None),
    ],
)
def test_find_srid_hint(text, srid):
    assert find_srid_hint(text) == srid


def test_srid_from_wkt():
    assert srid_from_wkt(CRS.from_epsg(2056).to_wkt()) == 2056
    assert srid_from_wkt("not a projection") is None
    assert srid_from_wkt("") is None


def test_plausibility_of_systems_without_signature():
    lv95_points = list(LV95_SQUARE)
    assert not is_plausible(32632, lv95_points)
    assert is_plausible(LV95, lv95_points)
    assert is_plausible(LV95, [])


def test_guess_to_dict():
    data = CoordinateSystemGuess.unknown("nothing").to_dict()
    assert data["srid"] is None
    assert data["confidence"] == "unknown"
    assert data["requires_confirmation"] is True


def test_transform_lv95_to_wgs84():
    result = transform_shape(Point(2600000, 1200000), LV95, WGS84)

    assert 6 < result.x < 10
    assert 45 < result.y < 48


def test_transform_same_system_is_identity():
    geometry = square(0, 0)
    assert transform_geometry(geometry, LV95, LV95) is geometry


def test_reproject_features_keeps_layer(make_feature):
    ring = [list(p) for p in LV95_SQUARE] + [list(LV95_SQUARE[0])]
    feature = make_feature({"type": "Polygon", "coordinates": [ring]}, layer="Building")

    [result] = reproject_features([feature], LV95, WGS84)

    assert result.layer == "Building"
    lon, lat = result.geometry["coordinates"][0][0][:2]
    assert 6 < lon < 10
    assert 45 < lat < 48


def test_unknown_override_is_rejected(detector, lv95_features):
    with pytest.raises(CoordinateSystemUnknown, match="Unknown EPSG code: 99999"):
        detector.detect(lv95_features, override=99999)


def test_known_srids():
    assert is_known_srid(LV95)
    assert not is_known_srid(99999)


def test_transform_to_unknown_system_is_a_value_error():
    with pytest.raises(ValueError):
        transform_shape(Point(2600000, 1200000), LV95, 99999)
