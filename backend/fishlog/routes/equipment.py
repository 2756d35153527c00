"""
FishLog Backend — Trip Equipment Route Handlers
=================================================

What:  Rod / lure / groundbait assignments of a trip, plus the equipment of
       the caller's most recent trip.

    GET    /api/v1/trips/{trip_id}/equipment/{kind}                   list
    PUT    /api/v1/trips/{trip_id}/equipment/{kind}                   replace whole set
    POST   /api/v1/trips/{trip_id}/equipment/{kind}                   add one
    DELETE /api/v1/trips/{trip_id}/equipment/{kind}/{assignment_id}   remove one
    GET    /api/v1/me/last-used-equipment
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from fishlog.routes.deps import get_current_user_id, get_equipment_service
from fishlog.schemas.common import ErrorResponse
from fishlog.schemas.equipment import (
    AddAssignmentRequest,
    AssignmentList,
    AssignmentResponse,
    EquipmentKindName,
    LastUsedEquipment,
    ReplaceAssignmentsRequest,
)
from fishlog.services.equipment_service import EquipmentService

router = APIRouter(prefix="/api/v1", tags=["Equipment"])

ERROR_RESPONSES = {
    400: {"description": "Equipment not found", "model": ErrorResponse},
    404: {"description": "Trip or assignment not found", "model": ErrorResponse},
    409: {"description": "Duplicate, foreign or deleted equipment", "model": ErrorResponse},
}


@router.get("/trips/{trip_id}/equipment/{kind}", response_model=AssignmentList, responses=ERROR_RESPONSES)
async def list_assignments(
    trip_id: UUID,
    kind: EquipmentKindName,
    service: EquipmentService = Depends(get_equipment_service),
):
    return AssignmentList(data=(await service.list(trip_id, kind)).unwrap())


@router.put(
    "/trips/{trip_id}/equipment/{kind}",
    response_model=AssignmentList,
    responses=ERROR_RESPONSES,
    summary="Replace the trip's set of one equipment kind",
)
async def replace_assignments(
    trip_id: UUID,
    kind: EquipmentKindName,
    body: ReplaceAssignmentsRequest,
    service: EquipmentService = Depends(get_equipment_service),
):
    return AssignmentList(data=(await service.replace_assignments(trip_id, kind, body.equipment_ids)).unwrap())


@router.post(
    "/trips/{trip_id}/equipment/{kind}",
    status_code=201,
    response_model=AssignmentResponse,
    responses=ERROR_RESPONSES,
)
async def add_assignment(
    trip_id: UUID,
    kind: EquipmentKindName,
    body: AddAssignmentRequest,
    service: EquipmentService = Depends(get_equipment_service),
):
    return (await service.add(trip_id, kind, body.equipment_id)).unwrap()


@router.delete("/trips/{trip_id}/equipment/{kind}/{assignment_id}", status_code=204, responses=ERROR_RESPONSES)
async def remove_assignment(
    trip_id: UUID,
    kind: EquipmentKindName,
    assignment_id: UUID,
    service: EquipmentService = Depends(get_equipment_service),
) -> Response:
    (await service.remove(trip_id, kind, assignment_id)).unwrap()
    return Response(status_code=204)


@router.get(
    "/me/last-used-equipment",
    response_model=LastUsedEquipment,
    responses={404: {"description": "No previous trips", "model": ErrorResponse}},
)
async def last_used_equipment(
    user_id: UUID = Depends(get_current_user_id),
    service: EquipmentService = Depends(get_equipment_service),
):
    return (await service.last_used(user_id)).unwrap()
