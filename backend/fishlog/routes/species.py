"""
FishLog Backend — Fish Species Route Handlers
===============================================

    GET /api/v1/fish-species                list (q, sort, cursor)
    GET /api/v1/fish-species/{species_id}   detail
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from fishlog.routes.deps import get_species_service
from fishlog.schemas.common import ErrorResponse, Page
from fishlog.schemas.species import FishSpeciesResponse, SpeciesListFilters
from fishlog.services.species_service import FishSpeciesService

router = APIRouter(prefix="/api/v1/fish-species", tags=["Fish species"])


@router.get("", response_model=Page[FishSpeciesResponse], summary="List fish species")
async def list_species(
    filters: Annotated[SpeciesListFilters, Query()],
    service: FishSpeciesService = Depends(get_species_service),
):
    return (await service.list(filters)).unwrap()


@router.get(
    "/{species_id}",
    response_model=FishSpeciesResponse,
    responses={404: {"description": "Fish species not found", "model": ErrorResponse}},
)
async def get_species(species_id: UUID, service: FishSpeciesService = Depends(get_species_service)):
    return (await service.get_by_id(species_id)).unwrap()
