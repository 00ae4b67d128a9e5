import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session

from hivecrop import __version__, crud, schemas
from hivecrop.config import get_settings
from hivecrop.db import Database
from hivecrop.deps import get_crop_service, get_db, parse_payload
from hivecrop.error_handlers import register_error_handlers
from hivecrop.errors import InvalidQueryError
from hivecrop.observability import setup_logging
from hivecrop.services import CropService
from hivecrop.utils import parse_datetime

logger = logging.getLogger(__name__)

NO_CROPS_MESSAGE = "No flowering crops found nearby."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect on startup, dispose the pool on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database = Database(settings.database_url, echo=settings.database_echo)
    database.create_all()
    app.state.database = database
    logger.info(f"Database connected: {database.redacted_url}")
    yield
    database.dispose()
    logger.info("Database connection closed")


settings = get_settings()

app = FastAPI(title="Hive & Crop API", version=__version__, lifespan=lifespan)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)


def _query_date(value: Optional[str], name: str):
    if value is None or value == "":
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        raise InvalidQueryError(f"Invalid {name}")


@app.get("/", response_class=HTMLResponse)
def welcome():
    return "<h1>Welcome to server</h1>"


@app.get("/health/ready")
def readiness(request: Request):
    if not request.app.state.database.ping():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready"}

# ---------------- Hives ----------------

@app.post("/api/hives", response_model=schemas.HiveCreated, status_code=status.HTTP_201_CREATED)
def create_hive(
    payload: schemas.HiveCreate = Depends(parse_payload(schemas.HiveCreate, "Hive")),
    db: Session = Depends(get_db),
):
    obj = crud.create_hive(db, payload)
    return schemas.HiveCreated(message="Hive added successfully", hive=schemas.HiveOut.model_validate(obj))


@app.get("/api/hives", response_model=schemas.HivePage)
def list_hives(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
):
    start = _query_date(start_date, "startDate")
    end = _query_date(end_date, "endDate")
    total, rows = crud.list_hives(db, start=start, end=end, page=page, limit=limit)
    return schemas.HivePage(
        total=total,
        page=page,
        limit=limit,
        data=[schemas.HiveOut.model_validate(h) for h in rows],
    )

# ---------------- Crops ----------------

@app.post("/api/crops", response_model=schemas.CropCreated, status_code=status.HTTP_201_CREATED)
def create_crop(
    payload: schemas.CropCreate = Depends(parse_payload(schemas.CropCreate, "Crop")),
    db: Session = Depends(get_db),
    svc: CropService = Depends(get_crop_service),
):
    obj = svc.register(db, payload)
    return schemas.CropCreated(message="Crop entry added successfully", crop=schemas.CropOut.model_validate(obj))


@app.get("/api/crops/nearby", response_model=schemas.NearbyCrops, response_model_exclude_none=True)
def nearby_crops(
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    radius: Optional[str] = None,
    date: Optional[str] = None,
    db: Session = Depends(get_db),
    svc: CropService = Depends(get_crop_service),
):
    crops = svc.nearby(db, latitude, longitude, radius=radius, on=date)
    if not crops:
        return schemas.NearbyCrops(message=NO_CROPS_MESSAGE, crops=[])
    return schemas.NearbyCrops(crops=[schemas.CropOut.model_validate(c) for c in crops])
