"""FastAPI application exposing natural dates and Sun/Moon events."""

from __future__ import annotations

import json
import logging
import math
import os
import time
from contextlib import asynccontextmanager, contextmanager
from dataclasses import asdict
from typing import Annotated, Iterator

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from models import (
    CacheResetResponse,
    ErrorResponse,
    EventQuery,
    HealthResponse,
    MoonEventsResponse,
    MoonPositionResponse,
    MustachesResponse,
    NaturalDateQuery,
    NaturalDateResponse,
    SunEventsResponse,
    SunPositionResponse,
    TimeOfEventQuery,
    TimeOfEventResponse,
)
from natural_time import EngineConfig, NaturalTimeEngine
from natural_time.astro import load_ephemeris, loaded_files
from natural_time.ephemeris import EphemerisAcquisitionError, resolve_ephemeris_source
from natural_time.errors import EphemerisError, NaturalTimeError

logging.basicConfig(level=logging.INFO, format="%(message)s")
LOGGER = logging.getLogger("natural-time-api")

APP_DESCRIPTION = (
    "Natural calendar dates and Sun/Moon events in day-degrees, based on JPL DE ephemerides"
)


def _cors_origins() -> list[str]:
    raw = os.environ.get("NATURAL_TIME_CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        source = resolve_ephemeris_source()
        files = load_ephemeris(str(source))
    except (EphemerisAcquisitionError, EphemerisError) as exc:
        LOGGER.error(json.dumps({"event": "startup_failed", "error": str(exc)}))
        raise
    config = EngineConfig.from_env()
    app.state.engine = NaturalTimeEngine(config)
    LOGGER.info(
        json.dumps(
            {
                "event": "startup",
                "ephemeris_source": str(source),
                "files": files,
                "sample_minutes": config.sample_minutes,
            }
        )
    )
    yield


app = FastAPI(
    title="Natural Time API",
    description=APP_DESCRIPTION,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_engine(request: Request) -> NaturalTimeEngine:
    return request.app.state.engine


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    LOGGER.error(
        json.dumps({"event": "error", "status": status_code, "code": code, "message": message})
    )
    payload = ErrorResponse(code=code, error=message)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:])
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    return _error_response(422, "validation_error", "; ".join(problems))


@app.exception_handler(NaturalTimeError)
async def engine_exception_handler(request: Request, exc: NaturalTimeError) -> JSONResponse:
    # bad input is the caller's fault, everything ephemeris-related is ours
    status_code = 500 if isinstance(exc, EphemerisError) else 400
    return _error_response(status_code, exc.code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled exception", exc_info=exc)
    return _error_response(500, "internal_error", "Unhandled server error")


@contextmanager
def _timed(event: str, params: NaturalDateQuery) -> Iterator[None]:
    """Log how long a successful engine call took."""

    started = time.perf_counter()
    yield
    LOGGER.info(
        json.dumps(
            {
                "event": event,
                "timestamp_ms": params.timestamp_ms,
                "lon": params.lon,
                "lat": getattr(params, "lat", None),
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
            }
        )
    )


_ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 422, 500)}


@app.get("/health", response_model=HealthResponse)
def health(engine: NaturalTimeEngine = Depends(get_engine)) -> HealthResponse:
    files = loaded_files()
    return HealthResponse(ephemeris_loaded=bool(files), files=files, cache=engine.cache_stats())


@app.get("/natural-date", response_model=NaturalDateResponse, responses=_ERROR_RESPONSES)
def natural_date_endpoint(
    params: Annotated[NaturalDateQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> NaturalDateResponse:
    with _timed("natural_date", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
    return NaturalDateResponse(**asdict(date))


@app.get("/sun/events", response_model=SunEventsResponse, responses=_ERROR_RESPONSES)
def sun_events_endpoint(
    params: Annotated[EventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> SunEventsResponse:
    with _timed("sun_events", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        events = engine.sun_events(date, params.lat)
    return SunEventsResponse(**asdict(events))


@app.get("/sun/position", response_model=SunPositionResponse, responses=_ERROR_RESPONSES)
def sun_position_endpoint(
    params: Annotated[EventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> SunPositionResponse:
    with _timed("sun_position", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        position = engine.sun_position(date, params.lat)
    return SunPositionResponse(**asdict(position))


@app.get("/moon/position", response_model=MoonPositionResponse, responses=_ERROR_RESPONSES)
def moon_position_endpoint(
    params: Annotated[EventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> MoonPositionResponse:
    with _timed("moon_position", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        position = engine.moon_position(date, params.lat)
    return MoonPositionResponse(**asdict(position))


@app.get("/moon/events", response_model=MoonEventsResponse, responses=_ERROR_RESPONSES)
def moon_events_endpoint(
    params: Annotated[EventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> MoonEventsResponse:
    with _timed("moon_events", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        events = engine.moon_events(date, params.lat)
    return MoonEventsResponse(**asdict(events))


@app.get("/mustaches", response_model=MustachesResponse, responses=_ERROR_RESPONSES)
def mustaches_endpoint(
    params: Annotated[EventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> MustachesResponse:
    with _timed("mustaches", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        envelope = engine.mustaches_range(date, params.lat)
    return MustachesResponse(**asdict(envelope))


@app.get("/time-of-event", response_model=TimeOfEventResponse, responses=_ERROR_RESPONSES)
def time_of_event_endpoint(
    params: Annotated[TimeOfEventQuery, Query()], engine: NaturalTimeEngine = Depends(get_engine)
) -> TimeOfEventResponse:
    with _timed("time_of_event", params):
        date = engine.derive_natural_date(params.timestamp_ms, params.lon)
        degrees = engine.time_of_event(date, params.event_ms)
    return TimeOfEventResponse(time_deg=None if math.isnan(degrees) else degrees)


@app.post("/caches/reset", response_model=CacheResetResponse)
def reset_caches_endpoint(engine: NaturalTimeEngine = Depends(get_engine)) -> CacheResetResponse:
    before = engine.cache_stats()
    engine.reset_caches()
    return CacheResetResponse(cleared=before)
