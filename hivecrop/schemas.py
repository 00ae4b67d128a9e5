# hivecrop/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import parse_datetime, to_aware_utc


def _number(v: Optional[float]) -> Any:
    # numbers stored as floats; whole values go out as ints (3, not 3.0)
    if v is not None and float(v).is_integer():
        return int(v)
    return v


def _text(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class _Wire(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _Placed(_Wire):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class HiveCreate(_Placed):
    hive_id: str = Field(..., min_length=1)
    date_placed: datetime
    num_colonies: Optional[float] = Field(None, ge=0)

    @field_validator("hive_id", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _text(v)

    @field_validator("date_placed", mode="before")
    @classmethod
    def _date(cls, v: Any) -> datetime:
        return parse_datetime(v)


class CropCreate(_Placed):
    name: str = Field(..., min_length=1)
    flowering_start: datetime
    flowering_end: datetime
    recommended_hive_density: float = Field(..., ge=1)

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _text(v)

    @field_validator("flowering_start", "flowering_end", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> datetime:
        return parse_datetime(v)

    @model_validator(mode="after")
    def _window(self) -> "CropCreate":
        if self.flowering_end < self.flowering_start:
            raise ValueError("floweringEnd must not be before floweringStart")
        return self


class PointOut(BaseModel):
    type: str = "Point"
    coordinates: List[float]


class _RecordOut(_Placed):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    location: PointOut
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_aware_utc(v)


class HiveOut(_RecordOut):
    hive_id: str
    date_placed: datetime
    num_colonies: Optional[float] = None

    @field_validator("date_placed")
    @classmethod
    def _placed_utc(cls, v: datetime) -> datetime:
        return to_aware_utc(v)

    @field_serializer("num_colonies")
    def _colonies(self, v: Optional[float]) -> Any:
        return _number(v)


class CropOut(_RecordOut):
    name: str
    flowering_start: datetime
    flowering_end: datetime
    recommended_hive_density: float

    @field_validator("flowering_start", "flowering_end")
    @classmethod
    def _window_utc(cls, v: datetime) -> datetime:
        return to_aware_utc(v)

    @field_serializer("recommended_hive_density")
    def _density(self, v: float) -> Any:
        return _number(v)


class HiveCreated(BaseModel):
    message: str
    hive: HiveOut


class HivePage(BaseModel):
    total: int
    page: int
    limit: int
    data: List[HiveOut]


class CropCreated(BaseModel):
    message: str
    crop: CropOut


class NearbyCrops(BaseModel):
    message: Optional[str] = None
    crops: List[CropOut]
