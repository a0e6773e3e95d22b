"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.schemas import HealthStatus, IngestResponse, Reading, ReadingList, ReadingSummary
from datastore.reading_store import ReadingStore, as_utc, build_default_store
from services.aggregator import Aggregator
from services.errors import DecodeError, RejectedReading, StoreUnavailable, ValidationFailure
from services.ingestion import IngestionCoordinator, build_default_coordinator
from services.registry import ConnectionRegistry, build_default_registry
from settings import get_settings

router = APIRouter()


def get_store() -> ReadingStore:
    return build_default_store()


def get_registry() -> ConnectionRegistry:
    return build_default_registry()


def get_coordinator() -> IngestionCoordinator:
    return build_default_coordinator()


def _resolve_limit(limit: Optional[int]) -> int:
    return limit if limit is not None else get_settings().recent_limit


@router.get(
    "/readings/recent",
    response_model=ReadingList,
    summary="Most recent readings, newest first.",
)
def recent_readings(
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Number of readings to return."),
    store: ReadingStore = Depends(get_store),
) -> ReadingList:
    readings = store.recent(_resolve_limit(limit))
    return ReadingList(count=len(readings), readings=readings)


@router.get(
    "/readings/summary",
    response_model=ReadingSummary,
    summary="Aggregate statistics over the most recent readings.",
)
def readings_summary(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    store: ReadingStore = Depends(get_store),
) -> ReadingSummary:
    return Aggregator().summarize(store.recent(_resolve_limit(limit)))


@router.get(
    "/readings",
    response_model=ReadingList,
    summary="Readings recorded within an inclusive time range, newest first.",
)
def readings_between(
    start: datetime = Query(..., description="Inclusive lower bound (UTC when no offset is given)."),
    end: datetime = Query(..., description="Inclusive upper bound (UTC when no offset is given)."),
    store: ReadingStore = Depends(get_store),
) -> ReadingList:
    if as_utc(start) > as_utc(end):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be later than end.",
        )
    readings = store.between(start, end)
    return ReadingList(count=len(readings), readings=readings)


@router.get(
    "/readings/{reading_id}",
    response_model=Reading,
    summary="Fetch a single stored reading.",
)
def get_reading(
    reading_id: str,
    store: ReadingStore = Depends(get_store),
) -> Reading:
    reading = store.get(reading_id)
    if reading is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reading {reading_id!r} not found.",
        )
    return reading


@router.post(
    "/readings",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=IngestResponse,
    summary="Ingest a reading over HTTP and relay it to every open socket.",
)
async def ingest_reading(
    request: Request,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> IngestResponse:
    outcome = await coordinator.handle(None, await request.body())
    error = outcome.error
    if isinstance(error, (DecodeError, RejectedReading)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)) from error
    if isinstance(error, ValidationFailure):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Reading failed validation.", "field_errors": error.field_errors},
        ) from error
    if isinstance(error, StoreUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reading store is unavailable.",
        ) from error
    return IngestResponse(status=outcome.status, reading=outcome.reading, recipients=outcome.recipients)


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
def healthcheck(
    store: ReadingStore = Depends(get_store),
    registry: ConnectionRegistry = Depends(get_registry),
) -> HealthStatus:
    return HealthStatus(
        status="ok" if store.available else "degraded",
        store="available" if store.available else "unavailable",
        environment=get_settings().environment,
        connections=len(registry),
    )


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status. Stream readings over ws://<host>/ws."}
