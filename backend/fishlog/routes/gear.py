"""
FishLog Backend — Equipment Catalog Route Handlers
====================================================

What:  The caller's own rods, lures and groundbaits. The same five routes
       are registered once per kind:

    GET    /api/v1/{kind}                  list (q, include_deleted, sort, cursor)
    POST   /api/v1/{kind}                  create
    GET    /api/v1/{kind}/{equipment_id}   detail
    PATCH  /api/v1/{kind}/{equipment_id}   rename
    DELETE /api/v1/{kind}/{equipment_id}   soft delete

How:   Each kind gets literal paths rather than a `/{kind}` parameter, so
       these routes never shadow /api/v1/trips or /api/v1/catches.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from fishlog.routes.deps import catalog_service_for
from fishlog.schemas.common import ErrorResponse, Page
from fishlog.schemas.equipment import (
    EquipmentCreate,
    EquipmentListFilters,
    EquipmentResponse,
    EquipmentUpdate,
)
from fishlog.services.equipment_catalog_service import EquipmentCatalogService
from fishlog.services.equipment_service import EQUIPMENT_KINDS, EquipmentKind

router = APIRouter(prefix="/api/v1", tags=["Equipment catalog"])


def _register(kind: EquipmentKind) -> None:
    get_service = catalog_service_for(kind.name)
    responses = {
        400: {"description": "Invalid input", "model": ErrorResponse},
        404: {"description": f"{kind.label} not found", "model": ErrorResponse},
        409: {"description": f"{kind.label} name already in use", "model": ErrorResponse},
    }

    @router.get(f"/{kind.name}", response_model=Page[EquipmentResponse], name=f"list_{kind.name}")
    async def list_equipment(
        filters: Annotated[EquipmentListFilters, Query()],
        service: EquipmentCatalogService = Depends(get_service),
    ):
        return (await service.list(filters)).unwrap()

    @router.post(
        f"/{kind.name}",
        status_code=201,
        response_model=EquipmentResponse,
        responses={409: responses[409]},
        name=f"create_{kind.singular}",
    )
    async def create_equipment(body: EquipmentCreate, service: EquipmentCatalogService = Depends(get_service)):
        return (await service.create(body)).unwrap()

    @router.get(
        f"/{kind.name}/{{equipment_id}}",
        response_model=EquipmentResponse,
        responses={404: responses[404]},
        name=f"get_{kind.singular}",
    )
    async def get_equipment(equipment_id: UUID, service: EquipmentCatalogService = Depends(get_service)):
        return (await service.get_by_id(equipment_id)).unwrap()

    @router.patch(
        f"/{kind.name}/{{equipment_id}}",
        response_model=EquipmentResponse,
        responses=responses,
        name=f"update_{kind.singular}",
    )
    async def update_equipment(
        equipment_id: UUID,
        body: EquipmentUpdate,
        service: EquipmentCatalogService = Depends(get_service),
    ):
        return (await service.update(equipment_id, body)).unwrap()

    @router.delete(
        f"/{kind.name}/{{equipment_id}}",
        status_code=204,
        responses={404: responses[404]},
        name=f"delete_{kind.singular}",
    )
    async def delete_equipment(equipment_id: UUID, service: EquipmentCatalogService = Depends(get_service)):
        (await service.soft_delete(equipment_id)).unwrap()
        return Response(status_code=204)


for _kind in EQUIPMENT_KINDS.values():
    _register(_kind)
