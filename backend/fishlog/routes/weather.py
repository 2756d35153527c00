"""
FishLog Backend — Weather Route Handlers
==========================================

What:  Weather snapshots of a trip and single snapshots.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from fishlog.routes.deps import get_weather_service
from fishlog.schemas.common import ErrorResponse, Page
from fishlog.schemas.weather import (
    ManualSnapshotCreate,
    SnapshotDetail,
    SnapshotListFilters,
    SnapshotResponse,
    WeatherRefreshRequest,
)
from fishlog.services.weather_service import WeatherService

router = APIRouter(prefix="/api/v1", tags=["Weather"])

ERROR_RESPONSES = {
    400: {"description": "Invalid period or hours", "model": ErrorResponse},
    404: {"description": "Trip or snapshot not found", "model": ErrorResponse},
}


@router.get("/trips/{trip_id}/weather/snapshots", response_model=Page[SnapshotResponse], responses=ERROR_RESPONSES)
async def list_snapshots(
    trip_id: UUID,
    filters: Annotated[SnapshotListFilters, Query()],
    service: WeatherService = Depends(get_weather_service),
):
    return (await service.list_snapshots(trip_id, filters)).unwrap()


@router.get(
    "/trips/{trip_id}/weather/current",
    response_model=SnapshotDetail,
    responses=ERROR_RESPONSES,
    summary="Preferred snapshot of a trip (manual over api)",
)
async def current_weather(trip_id: UUID, service: WeatherService = Depends(get_weather_service)):
    return (await service.get_current(trip_id)).unwrap()


@router.post(
    "/trips/{trip_id}/weather/manual",
    status_code=201,
    response_model=SnapshotDetail,
    responses=ERROR_RESPONSES,
)
async def create_manual_snapshot(
    trip_id: UUID,
    body: ManualSnapshotCreate,
    service: WeatherService = Depends(get_weather_service),
):
    return (await service.create_manual(trip_id, body)).unwrap()


@router.post(
    "/trips/{trip_id}/weather/refresh",
    status_code=201,
    response_model=SnapshotDetail,
    responses={**ERROR_RESPONSES, 502: {"description": "Weather provider failed", "model": ErrorResponse}},
)
async def refresh_weather(
    trip_id: UUID,
    body: WeatherRefreshRequest,
    service: WeatherService = Depends(get_weather_service),
):
    return (await service.refresh(trip_id, body)).unwrap()


@router.get("/weather/snapshots/{snapshot_id}", response_model=SnapshotDetail, responses=ERROR_RESPONSES)
async def get_snapshot(
    snapshot_id: UUID,
    include_hours: bool = Query(default=False),
    service: WeatherService = Depends(get_weather_service),
):
    return (await service.get_snapshot(snapshot_id, include_hours)).unwrap()


@router.delete("/weather/snapshots/{snapshot_id}", status_code=204, responses=ERROR_RESPONSES)
async def delete_snapshot(snapshot_id: UUID, service: WeatherService = Depends(get_weather_service)) -> Response:
    (await service.delete_snapshot(snapshot_id)).unwrap()
    return Response(status_code=204)
