# hivecrop/services.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from hivecrop import crud, models, schemas
from hivecrop.errors import InvalidQueryError
from hivecrop.utils import is_valid_coord, parse_coordinate, parse_datetime, to_aware_utc

Clock = Callable[[], datetime]
Raw = Union[str, float, int, None]


class CropService:
    def __init__(
        self,
        *,
        clock: Clock | None = None,
        overlap_radius_km: float = 2.0,
        default_radius_km: float = 100.0,
    ):
        # DI
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.overlap_radius_km = overlap_radius_km
        self.default_radius_km = default_radius_km

    def register(self, db: Session, payload: schemas.CropCreate) -> models.Crop:
        return crud.create_crop(db, payload, overlap_radius_km=self.overlap_radius_km)

    def _radius_km(self, radius: Raw) -> float:
        if radius is None or radius == "":
            return self.default_radius_km
        value = parse_coordinate(radius)
        if value is None or value < 0:
            raise InvalidQueryError("Invalid radius")
        return value

    def _search_date(self, on: Union[Raw, datetime]) -> datetime:
        if on is None or on == "":
            return to_aware_utc(self._clock())
        try:
            return parse_datetime(on)
        except ValueError:
            raise InvalidQueryError("Invalid date")

    def nearby(
        self,
        db: Session,
        latitude: Raw,
        longitude: Raw,
        *,
        radius: Raw = None,
        on: Union[Raw, datetime] = None,
    ) -> list[models.Crop]:
        """Crops flowering on `on` (default: now) within `radius` km, nearest first."""
        lat, lon = parse_coordinate(latitude), parse_coordinate(longitude)
        if not is_valid_coord(lat, lon):
            raise InvalidQueryError("Invalid latitude or longitude")
        radius_km = self._radius_km(radius)
        search_date = self._search_date(on)
        return crud.flowering_crops_near(db, lat, lon, radius_km, search_date)
