from datetime import date, datetime, timedelta, timezone

import pytest

from hivecrop.utils import (
    bounding_box,
    haversine_km,
    is_valid_coord,
    parse_coordinate,
    parse_datetime,
    point_geometry,
    to_aware_utc,
)

UTC = timezone.utc


def test_point_geometry_orders_lon_lat():
    assert point_geometry(41.33, 19.82) == {"type": "Point", "coordinates": [19.82, 41.33]}


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2024-03-01", datetime(2024, 3, 1, tzinfo=UTC)),
        ("2024-03-01T10:30:00Z", datetime(2024, 3, 1, 10, 30, tzinfo=UTC)),
        ("2024-03-01T12:30:00+02:00", datetime(2024, 3, 1, 10, 30, tzinfo=UTC)),
        (date(2024, 3, 1), datetime(2024, 3, 1, tzinfo=UTC)),
        (datetime(2024, 3, 1, 10, 30), datetime(2024, 3, 1, 10, 30, tzinfo=UTC)),
        (1709251200000, datetime(2024, 3, 1, tzinfo=UTC)),
    ],
)
def test_parse_datetime_accepts_common_inputs(raw, expected):
    parsed = parse_datetime(raw)
    assert parsed.tzinfo is not None
    assert parsed == expected


@pytest.mark.parametrize("raw", ["garbage", "", None, True, float("nan")])
def test_parse_datetime_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_datetime(raw)


def test_to_aware_utc_converts_offsets():
    plus_two = timezone(timedelta(hours=2))
    v = to_aware_utc(datetime(2024, 3, 1, 12, 0, tzinfo=plus_two))
    assert v == datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
    assert v.utcoffset() == timedelta(0)


@pytest.mark.parametrize(
    "lat,lon,ok",
    [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.0001, 0, False),
        (200, 20, False),
        (10, -180.5, False),
        (None, 20, False),
        (float("nan"), 20, False),
    ],
)
def test_is_valid_coord(lat, lon, ok):
    assert is_valid_coord(lat, lon) is ok


def test_parse_coordinate():
    assert parse_coordinate("10.5") == 10.5
    assert parse_coordinate(" -3 ") == -3.0
    assert parse_coordinate("abc") is None
    assert parse_coordinate("inf") is None
    assert parse_coordinate(None) is None


def test_haversine_known_distance():
    # one degree of latitude
    assert haversine_km(10.0, 20.0, 11.0, 20.0) == pytest.approx(111.19, rel=1e-3)
    assert haversine_km(10.0, 20.0, 10.0, 20.0) == 0


def test_bounding_box_contains_circle():
    min_lat, max_lat, lon_ranges = bounding_box(10.0, 20.0, 100.0)
    assert len(lon_ranges) == 1
    min_lon, max_lon = lon_ranges[0]
    assert min_lat < 10.0 < max_lat
    assert min_lon < 20.0 < max_lon
    # the box edges sit at (or beyond) the radius
    assert haversine_km(10.0, 20.0, max_lat, 20.0) == pytest.approx(100.0, rel=1e-6)
    assert haversine_km(10.0, 20.0, 10.0, max_lon) >= 100.0


def test_bounding_box_splits_at_antimeridian():
    _, _, lon_ranges = bounding_box(0.0, 179.9, 50.0)
    assert len(lon_ranges) == 2
    assert lon_ranges[0][1] == 180.0
    assert lon_ranges[1][0] == -180.0


def test_bounding_box_near_pole_covers_all_longitudes():
    min_lat, max_lat, lon_ranges = bounding_box(89.9, 0.0, 50.0)
    assert max_lat == 90.0
    assert lon_ranges == [(-180.0, 180.0)]
