# hivecrop/models.py
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Index, Integer, JSON, String
from sqlalchemy.orm import validates

from .db import Base
from .utils import point_geometry, to_aware_utc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PointLocated:
    """latitude/longitude plus the GeoJSON point derived from them."""

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # {"type": "Point", "coordinates": [lon, lat]}; only written by _mirror_location
    location = Column(JSON, nullable=False)

    @validates("latitude", "longitude")
    def _mirror_location(self, key, value):
        lat = value if key == "latitude" else self.latitude
        lon = value if key == "longitude" else self.longitude
        if lat is not None and lon is not None:
            self.location = point_geometry(lat, lon)
        return value


class Timestamped:
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class Hive(PointLocated, Timestamped, Base):
    __tablename__ = "hives"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hive_id = Column(String, nullable=False, unique=True, index=True)
    date_placed = Column(DateTime(timezone=True), nullable=False, index=True)
    num_colonies = Column(Float, nullable=True)

    __table_args__ = (Index("ix_hives_lat_lon", "latitude", "longitude"),)

    @validates("date_placed")
    def _tz(self, _, v):
        # stored as UTC; SQLite drops the offset
        return to_aware_utc(v) if v is not None else v


class Crop(PointLocated, Timestamped, Base):
    __tablename__ = "crops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    flowering_start = Column(DateTime(timezone=True), nullable=False, index=True)
    flowering_end = Column(DateTime(timezone=True), nullable=False, index=True)
    recommended_hive_density = Column(Float, nullable=False)

    __table_args__ = (
        Index("ix_crops_lat_lon", "latitude", "longitude"),
        CheckConstraint("recommended_hive_density >= 1", name="ck_crops_density_min"),
    )

    @validates("flowering_start", "flowering_end")
    def _tz(self, _, v):
        return to_aware_utc(v) if v is not None else v
