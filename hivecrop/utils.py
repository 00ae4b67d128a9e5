from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union
import math

import pandas as pd

Number = Union[int, float]
DateLike = Union[str, datetime, date, int, float]

EARTH_RADIUS_KM = 6371.0088


def to_aware_utc(v: Optional[datetime]) -> datetime:
    """Return v as an aware UTC datetime; None means now."""
    if v is None:
        return datetime.now(timezone.utc)
    return v.astimezone(timezone.utc) if v.tzinfo else v.replace(tzinfo=timezone.utc)


def parse_datetime(v: DateLike) -> datetime:
    """
    Parse ISO strings (date-only or date-time, any offset), date/datetime
    objects or epoch milliseconds into an aware UTC datetime.
    Raises ValueError for anything else.
    """
    if isinstance(v, bool) or v is None:
        raise ValueError(f"Invalid date: {v!r}")
    if isinstance(v, datetime):
        return to_aware_utc(v)
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day, tzinfo=timezone.utc)
    if isinstance(v, (int, float)):
        if not is_valid_number(v):
            raise ValueError(f"Invalid date: {v!r}")
        ts = pd.to_datetime(v, unit="ms", errors="coerce", utc=True)
    else:
        ts = pd.to_datetime(str(v).strip(), errors="coerce", utc=True)
    if pd.isna(ts):
        raise ValueError(f"Invalid date: {v!r}")
    return ts.to_pydatetime()


def is_valid_number(v: Optional[Number]) -> bool:
    """Check if value is a finite real number (not None/NaN/inf)."""
    try:
        return v is not None and math.isfinite(float(v))
    except (TypeError, ValueError):
        return False


def is_valid_coord(lat: Optional[Number], lon: Optional[Number]) -> bool:
    return (
        is_valid_number(lat) and is_valid_number(lon)
        and -90 <= float(lat) <= 90
        and -180 <= float(lon) <= 180
    )


def parse_coordinate(raw: Optional[Union[str, Number]]) -> Optional[float]:
    """float() for query values; None when missing or unparseable."""
    if raw is None:
        return None
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def point_geometry(lat: Number, lon: Number) -> dict:
    """GeoJSON point for (lat, lon); coordinates are [lon, lat]."""
    return {"type": "Point", "coordinates": [float(lon), float(lat)]}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute great-circle distance in kilometers."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return EARTH_RADIUS_KM * (2 * math.atan2(math.sqrt(a), math.sqrt(1 - a)))


def bounding_box(
    lat: float, lon: float, radius_km: float
) -> tuple[float, float, list[tuple[float, float]]]:
    """
    Smallest lat/lon box containing the circle of radius_km around (lat, lon).
    Returns (min_lat, max_lat, lon_ranges); lon_ranges has two entries when
    the box crosses the antimeridian and covers everything near the poles.
    """
    ang = radius_km / EARTH_RADIUS_KM
    dlat = math.degrees(ang)
    min_lat, max_lat = lat - dlat, lat + dlat

    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), [(-180.0, 180.0)]

    ratio = math.sin(ang) / math.cos(math.radians(lat))
    if ratio >= 1:
        return min_lat, max_lat, [(-180.0, 180.0)]
    dlon = math.degrees(math.asin(ratio))
    min_lon, max_lon = lon - dlon, lon + dlon

    if min_lon < -180:
        return min_lat, max_lat, [(min_lon + 360.0, 180.0), (-180.0, max_lon)]
    if max_lon > 180:
        return min_lat, max_lat, [(min_lon, 180.0), (-180.0, max_lon - 360.0)]
    return min_lat, max_lat, [(min_lon, max_lon)]
