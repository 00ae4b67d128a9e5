from datetime import datetime, timezone

import pytest
from sqlalchemy import text

from hivecrop import crud, models, schemas
from hivecrop.db import Database
from hivecrop.errors import CropOverlapError, PersistenceError, RecordValidationError

UTC = timezone.utc


def same_moment(a: datetime, b: datetime) -> bool:
    """Compare datetimes ignoring tz-awareness differences."""
    if a.tzinfo is None:
        a = a.replace(tzinfo=UTC)
    if b.tzinfo is None:
        b = b.replace(tzinfo=UTC)
    return a == b


def mk_hive(
    *,
    hive_id: str = "H001",
    date_placed: str = "2024-03-01T08:00:00Z",
    latitude: float = 10.0,
    longitude: float = 20.0,
    num_colonies: float | None = 4,
) -> schemas.HiveCreate:
    return schemas.HiveCreate(
        hive_id=hive_id,
        date_placed=date_placed,
        latitude=latitude,
        longitude=longitude,
        num_colonies=num_colonies,
    )


def mk_crop(
    *,
    name: str = "Canola",
    flowering_start: str = "2024-03-01",
    flowering_end: str = "2024-04-01",
    latitude: float = 10.0,
    longitude: float = 20.0,
    recommended_hive_density: float = 2,
) -> schemas.CropCreate:
    return schemas.CropCreate(
        name=name,
        flowering_start=flowering_start,
        flowering_end=flowering_end,
        latitude=latitude,
        longitude=longitude,
        recommended_hive_density=recommended_hive_density,
    )


@pytest.fixture(scope="function")
def db_session():
    """Fresh in-memory SQLite session per test."""
    database = Database("sqlite://")
    database.create_all()
    with database.session() as db:
        yield db
    database.dispose()


def test_create_hive_mirrors_location_and_sets_timestamps(db_session):
    obj = crud.create_hive(db_session, mk_hive(latitude=41.33, longitude=19.82))

    assert isinstance(obj, models.Hive)
    assert obj.id is not None
    assert obj.hive_id == "H001"
    assert obj.location == {"type": "Point", "coordinates": [19.82, 41.33]}
    assert same_moment(obj.date_placed, datetime(2024, 3, 1, 8, 0, tzinfo=UTC))
    assert obj.num_colonies == 4
    assert obj.created_at is not None
    assert obj.updated_at is not None


def test_changing_coordinates_rederives_location(db_session):
    obj = crud.create_hive(db_session, mk_hive())

    obj.latitude = 11.5
    db_session.commit()
    db_session.refresh(obj)

    assert obj.location["coordinates"] == [20.0, 11.5]


def test_duplicate_hive_id_is_a_validation_error(db_session):
    crud.create_hive(db_session, mk_hive(hive_id="DUP"))

    with pytest.raises(RecordValidationError) as exc:
        crud.create_hive(db_session, mk_hive(hive_id="DUP", latitude=12.0))

    assert "hive_id" in exc.value.message
    # the session is usable after the failed insert
    total, rows = crud.list_hives(db_session)
    assert total == 1
    assert [h.hive_id for h in rows] == ["DUP"]


def test_list_hives_newest_first_with_inclusive_bounds(db_session):
    for i, day in enumerate(["2024-01-01", "2024-02-01", "2024-03-01", "2024-04-01"]):
        crud.create_hive(db_session, mk_hive(hive_id=f"H{i}", date_placed=day))

    total, rows = crud.list_hives(
        db_session,
        start=datetime(2024, 2, 1, tzinfo=UTC),
        end=datetime(2024, 3, 1, tzinfo=UTC),
    )

    assert total == 2
    assert [h.hive_id for h in rows] == ["H2", "H1"]


@pytest.mark.parametrize("page,expected", [(1, 3), (2, 3), (3, 1), (4, 0)])
def test_list_hives_pagination_window(db_session, page, expected):
    for i in range(7):
        crud.create_hive(db_session, mk_hive(hive_id=f"P{i}", date_placed=f"2024-05-0{i + 1}"))

    total, rows = crud.list_hives(db_session, page=page, limit=3)

    assert total == 7
    assert len(rows) == expected


def test_crops_within_radius_sorts_nearest_first_and_drops_far(db_session):
    crud.create_crop(db_session, mk_crop(name="Far", latitude=10.0, longitude=20.5))
    crud.create_crop(db_session, mk_crop(name="Mid", latitude=10.0, longitude=20.1))
    crud.create_crop(db_session, mk_crop(name="Near", latitude=10.0, longitude=20.01))

    res = crud.crops_within_radius(db_session, 10.0, 20.0, 20.0)

    assert [c.name for c, _ in res] == ["Near", "Mid"]
    assert res[0][1] < res[1][1] <= 20.0


def test_crops_within_radius_across_antimeridian(db_session):
    crud.create_crop(db_session, mk_crop(name="East", latitude=0.0, longitude=179.99))
    crud.create_crop(db_session, mk_crop(name="West", latitude=0.0, longitude=-179.99))

    res = crud.crops_within_radius(db_session, 0.0, 179.995, 5.0)

    assert sorted(c.name for c, _ in res) == ["East", "West"]


def test_create_crop_rejects_contained_window_nearby(db_session):
    crud.create_crop(db_session, mk_crop())

    with pytest.raises(CropOverlapError):
        crud.create_crop(
            db_session,
            mk_crop(flowering_start="2024-03-15", flowering_end="2024-03-20", latitude=10.005),
        )

    assert db_session.query(models.Crop).count() == 1


def test_create_crop_touching_boundary_counts_as_overlap(db_session):
    crud.create_crop(db_session, mk_crop())

    with pytest.raises(CropOverlapError):
        crud.create_crop(db_session, mk_crop(flowering_start="2024-04-01", flowering_end="2024-04-10"))


def test_create_crop_accepts_disjoint_window_other_name_or_far_away(db_session):
    crud.create_crop(db_session, mk_crop())

    later = crud.create_crop(db_session, mk_crop(flowering_start="2024-05-01", flowering_end="2024-06-01"))
    other = crud.create_crop(db_session, mk_crop(name="Sunflower"))
    far = crud.create_crop(db_session, mk_crop(latitude=10.05))  # ~5.6 km north

    assert later.id and other.id and far.id
    assert db_session.query(models.Crop).count() == 4


def test_create_crop_waits_on_concurrent_writer_then_fails(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'crops.db'}")
    database.create_all()
    first, second = database.SessionLocal(), database.SessionLocal()
    try:
        crud._claim_crop_write_lock(first, "Canola")
        second.execute(text("PRAGMA busy_timeout = 100"))

        with pytest.raises(PersistenceError) as err:
            crud.create_crop(second, mk_crop())
        assert "locked" in err.value.message

        first.rollback()
        assert second.query(models.Crop).count() == 0
        assert crud.create_crop(second, mk_crop()).id is not None
    finally:
        first.close()
        second.close()
        database.dispose()


def test_find_overlapping_crops_has_no_result_cap(db_session):
    for i in range(150):
        db_session.add(
            models.Crop(
                name="Clover",
                flowering_start=datetime(2024, 3, 1, tzinfo=UTC),
                flowering_end=datetime(2024, 4, 1, tzinfo=UTC),
                latitude=10.0 + i * 0.00001,
                longitude=20.0,
                recommended_hive_density=1,
            )
        )
    db_session.commit()

    res = crud.find_overlapping_crops(
        db_session,
        "Clover",
        10.0,
        20.0,
        datetime(2024, 3, 10, tzinfo=UTC),
        datetime(2024, 3, 11, tzinfo=UTC),
    )

    assert len(res) == 150


def test_flowering_crops_near_filters_on_date(db_session):
    crud.create_crop(db_session, mk_crop())

    in_bloom = crud.flowering_crops_near(db_session, 10.0, 20.0, 100.0, datetime(2024, 3, 15, tzinfo=UTC))
    done = crud.flowering_crops_near(db_session, 10.0, 20.0, 100.0, datetime(2024, 5, 1, tzinfo=UTC))

    assert [c.name for c in in_bloom] == ["Canola"]
    assert done == []
