import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hivecrop import models, schemas
from hivecrop.errors import CropOverlapError, PersistenceError, RecordValidationError
from hivecrop.utils import bounding_box, haversine_km

logger = logging.getLogger(__name__)

# ---------- tiny, single-purpose helpers ----------

def _store_message(e: SQLAlchemyError) -> str:
    # the driver's own text, without SQLAlchemy's statement dump
    return str(getattr(e, "orig", None) or e)


def _within_box(model, lat: float, lon: float, radius_km: float):
    min_lat, max_lat, lon_ranges = bounding_box(lat, lon, radius_km)
    lon_clause = or_(*[model.longitude.between(lo, hi) for lo, hi in lon_ranges])
    return and_(model.latitude.between(min_lat, max_lat), lon_clause)


def _claim_crop_write_lock(db: Session, name: str) -> None:
    """
    Serialise check-and-insert for crops: the overlap read and the insert
    must see each other across concurrent requests.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:name))"), {"name": name})
    elif dialect == "sqlite":
        # a no-op write takes the RESERVED lock for the rest of the transaction
        db.execute(text("UPDATE crops SET name = name WHERE 0"))


def _insert(db: Session, obj, record: str):
    try:
        db.add(obj)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise RecordValidationError(f"{record} validation failed: {_store_message(e)}") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(_store_message(e), "insert") from e
    db.refresh(obj)
    return obj

# ---------- hives ----------

def create_hive(db: Session, payload: schemas.HiveCreate) -> models.Hive:
    obj = models.Hive(
        hive_id=payload.hive_id,
        date_placed=payload.date_placed,
        latitude=payload.latitude,
        longitude=payload.longitude,
        num_colonies=payload.num_colonies,
    )
    obj = _insert(db, obj, "Hive")
    logger.info("Hive added", extra={"hive_id": obj.hive_id})
    return obj


def list_hives(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[int, list[models.Hive]]:
    """Newest-first page of hives placed within [start, end]; total ignores the page window."""
    conditions = []
    if start is not None:
        conditions.append(models.Hive.date_placed >= start)
    if end is not None:
        conditions.append(models.Hive.date_placed <= end)

    stmt = (
        select(models.Hive)
        .where(*conditions)
        .order_by(models.Hive.date_placed.desc(), models.Hive.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    count_stmt = select(func.count()).select_from(models.Hive).where(*conditions)
    try:
        rows = list(db.scalars(stmt))
        total = db.scalar(count_stmt)
    except SQLAlchemyError as e:
        raise PersistenceError(_store_message(e)) from e
    return total, rows

# ---------- crops ----------

def crops_within_radius(
    db: Session,
    lat: float,
    lon: float,
    radius_km: float,
    *,
    name: Optional[str] = None,
    overlapping: Optional[tuple[datetime, datetime]] = None,
    flowering_on: Optional[datetime] = None,
) -> list[tuple[models.Crop, float]]:
    """
    Crops within radius_km of (lat, lon), nearest first.

    The indexed latitude/longitude columns narrow candidates to the bounding
    box in SQL; the exact great-circle distance decides membership. Every
    crop inside the radius is returned (no result cap).
    """
    Crop = models.Crop
    conditions = [_within_box(Crop, lat, lon, radius_km)]
    if name is not None:
        conditions.append(Crop.name == name)
    if overlapping is not None:
        start, end = overlapping
        # closed intervals: touching boundaries overlap
        conditions.append(Crop.flowering_start <= end)
        conditions.append(Crop.flowering_end >= start)
    if flowering_on is not None:
        conditions.append(Crop.flowering_start <= flowering_on)
        conditions.append(Crop.flowering_end >= flowering_on)

    try:
        candidates = list(db.scalars(select(Crop).where(*conditions)))
    except SQLAlchemyError as e:
        raise PersistenceError(_store_message(e)) from e

    results: list[tuple[models.Crop, float]] = []
    for c in candidates:
        d = haversine_km(float(lat), float(lon), float(c.latitude), float(c.longitude))
        if d <= float(radius_km):
            results.append((c, d))
    return sorted(results, key=lambda x: (x[1], x[0].id))


def find_overlapping_crops(
    db: Session,
    name: str,
    lat: float,
    lon: float,
    start: datetime,
    end: datetime,
    radius_km: float = 2.0,
) -> list[models.Crop]:
    res = crops_within_radius(db, lat, lon, radius_km, name=name, overlapping=(start, end))
    return [c for c, _ in res]


def create_crop(
    db: Session, payload: schemas.CropCreate, *, overlap_radius_km: float = 2.0
) -> models.Crop:
    """Insert a crop unless a same-name crop nearby already flowers in an overlapping window."""
    try:
        _claim_crop_write_lock(db, payload.name)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(_store_message(e), "lock") from e

    try:
        overlapping = find_overlapping_crops(
            db,
            payload.name,
            payload.latitude,
            payload.longitude,
            payload.flowering_start,
            payload.flowering_end,
            overlap_radius_km,
        )
    except PersistenceError:
        db.rollback()
        raise
    if overlapping:
        db.rollback()
        logger.warning(
            "Overlapping crop rejected",
            extra={"crop_name": payload.name, "count": len(overlapping)},
        )
        raise CropOverlapError(payload.name, len(overlapping))

    obj = models.Crop(
        name=payload.name,
        flowering_start=payload.flowering_start,
        flowering_end=payload.flowering_end,
        latitude=payload.latitude,
        longitude=payload.longitude,
        recommended_hive_density=payload.recommended_hive_density,
    )
    obj = _insert(db, obj, "Crop")
    logger.info("Crop entry added", extra={"crop_name": obj.name})
    return obj


def flowering_crops_near(
    db: Session, lat: float, lon: float, radius_km: float, on: datetime
) -> list[models.Crop]:
    return [c for c, _ in crops_within_radius(db, lat, lon, radius_km, flowering_on=on)]
