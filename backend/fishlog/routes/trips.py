"""
FishLog Backend — Trip Route Handlers
=======================================

What:  /api/v1/trips: list, create, quick start, detail, update, close,
       soft delete.
How:   Parse input, call TripService, unwrap. Domain errors raised by
       unwrap() are rendered by the handlers in main.py.
"""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from fishlog.routes.deps import get_trip_service
from fishlog.schemas.common import ErrorResponse, Page
from fishlog.schemas.trip import (
    QuickStartRequest,
    QuickStartResponse,
    TripClose,
    TripCreate,
    TripDetail,
    TripListFilters,
    TripListItem,
    TripResponse,
    TripUpdate,
)
from fishlog.services.trip_service import TripService

router = APIRouter(prefix="/api/v1/trips", tags=["Trips"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    404: {"description": "Trip not found", "model": ErrorResponse},
}


@router.get("", response_model=Page[TripListItem], summary="List trips with keyset pagination")
async def list_trips(
    filters: Annotated[TripListFilters, Query()],
    service: TripService = Depends(get_trip_service),
):
    return (await service.list(filters)).unwrap()


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    responses={400: ERROR_RESPONSES[400]},
    summary="Create a trip",
)
async def create_trip(body: TripCreate, service: TripService = Depends(get_trip_service)):
    return (await service.create(body)).unwrap()


@router.post(
    "/quick-start",
    status_code=201,
    response_model=QuickStartResponse,
    summary="Start an active trip now",
    description="Creates an active trip starting now, optionally copying the last trip's equipment.",
)
async def quick_start(body: QuickStartRequest, service: TripService = Depends(get_trip_service)):
    return (await service.quick_start(body)).unwrap()


@router.get(
    "/{trip_id}",
    response_model=TripDetail,
    responses=ERROR_RESPONSES,
    summary="Get a trip with optional related data",
)
async def get_trip(
    trip_id: UUID,
    include: List[str] = Query(
        default=[],
        description="Comma-separated or repeated: rods, lures, groundbaits, catches, weather_current",
    ),
    service: TripService = Depends(get_trip_service),
):
    includes = [part.strip() for value in include for part in value.split(",") if part.strip()]
    return (await service.get_by_id(trip_id, includes)).unwrap()


@router.patch("/{trip_id}", response_model=TripResponse, responses=ERROR_RESPONSES, summary="Update a trip")
async def update_trip(trip_id: UUID, body: TripUpdate, service: TripService = Depends(get_trip_service)):
    return (await service.update(trip_id, body)).unwrap()


@router.post("/{trip_id}/close", response_model=TripResponse, responses=ERROR_RESPONSES, summary="Close a trip")
async def close_trip(trip_id: UUID, body: TripClose, service: TripService = Depends(get_trip_service)):
    return (await service.close(trip_id, body.ended_at)).unwrap()


@router.delete("/{trip_id}", status_code=204, responses={404: ERROR_RESPONSES[404]}, summary="Soft-delete a trip")
async def delete_trip(trip_id: UUID, service: TripService = Depends(get_trip_service)) -> Response:
    (await service.soft_delete(trip_id)).unwrap()
    return Response(status_code=204)
