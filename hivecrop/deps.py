# hivecrop/deps.py
import json
from typing import Awaitable, Callable, Iterator, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from hivecrop.config import get_settings
from hivecrop.errors import RecordValidationError
from hivecrop.services import CropService

M = TypeVar("M", bound=BaseModel)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_db(request: Request) -> Iterator[Session]:
    database = request.app.state.database
    with database.session() as db:
        yield db


def get_crop_service() -> CropService:
    settings = get_settings()
    return CropService(
        overlap_radius_km=settings.crop_overlap_radius_km,
        default_radius_km=settings.nearby_default_radius_km,
    )


def parse_payload(model: Type[M], record: str) -> Callable[[Request], Awaitable[M]]:
    """Dependency reading a JSON or form body into `model`."""

    async def _parse(request: Request) -> M:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(_FORM_TYPES):
            form = await request.form()
            # blank form fields mean "not given"
            raw = {k: v for k, v in form.items() if isinstance(v, str) and v != ""}
        else:
            body = await request.body()
            try:
                raw = json.loads(body) if body else {}
            except json.JSONDecodeError as e:
                raise RecordValidationError(f"{record} validation failed: body: {e.msg}")
            if not isinstance(raw, dict):
                raise RecordValidationError(f"{record} validation failed: body: expected an object")

        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise RecordValidationError.from_pydantic(record, e)

    return _parse
