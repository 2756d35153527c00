"""
FishLog Backend — Catch Route Handlers
========================================

What:  Catches of a trip (/api/v1/trips/{trip_id}/catches) and single
       catches (/api/v1/catches/{catch_id}).
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from fishlog.routes.deps import get_catch_service
from fishlog.schemas.catch import CatchCreate, CatchListFilters, CatchResponse, CatchUpdate
from fishlog.schemas.common import ErrorResponse, Page
from fishlog.services.catch_service import CatchService

router = APIRouter(prefix="/api/v1", tags=["Catches"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input or caught_at outside the trip", "model": ErrorResponse},
    404: {"description": "Trip or catch not found", "model": ErrorResponse},
    409: {"description": "Equipment owned by another user or deleted", "model": ErrorResponse},
}


@router.get("/trips/{trip_id}/catches", response_model=Page[CatchResponse], summary="List catches of a trip")
async def list_catches(
    trip_id: UUID,
    filters: Annotated[CatchListFilters, Query()],
    service: CatchService = Depends(get_catch_service),
):
    return (await service.list(trip_id, filters)).unwrap()


@router.post(
    "/trips/{trip_id}/catches",
    status_code=201,
    response_model=CatchResponse,
    responses=ERROR_RESPONSES,
    summary="Record a catch",
)
async def create_catch(trip_id: UUID, body: CatchCreate, service: CatchService = Depends(get_catch_service)):
    return (await service.create(trip_id, body)).unwrap()


@router.get("/catches/{catch_id}", response_model=CatchResponse, responses=ERROR_RESPONSES, summary="Get a catch")
async def get_catch(catch_id: UUID, service: CatchService = Depends(get_catch_service)):
    return (await service.get_by_id(catch_id)).unwrap()


@router.patch("/catches/{catch_id}", response_model=CatchResponse, responses=ERROR_RESPONSES, summary="Update a catch")
async def update_catch(catch_id: UUID, body: CatchUpdate, service: CatchService = Depends(get_catch_service)):
    return (await service.update(catch_id, body)).unwrap()


@router.delete("/catches/{catch_id}", status_code=204, responses=ERROR_RESPONSES, summary="Delete a catch")
async def delete_catch(catch_id: UUID, service: CatchService = Depends(get_catch_service)) -> Response:
    (await service.delete(catch_id)).unwrap()
    return Response(status_code=204)
