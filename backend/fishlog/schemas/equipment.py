"""
FishLog Backend — Equipment Schemas
=====================================

What:  Catalog models for the owner's rods, lures and groundbaits (create,
       rename, list, soft delete) and the trip assignment rows.
       Assignment rows for the three equipment kinds share one shape:
       `{id, equipment_id, name_snapshot, created_at}` where `id` is the
       assignment id (used by DELETE) and `equipment_id` the rod/lure/bait.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from fishlog.config import settings
from fishlog.schemas.trip import EquipmentSnapshot

EquipmentKindName = Literal["rods", "lures", "groundbaits"]
EquipmentSort = Literal["name", "created_at", "updated_at"]


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name cannot be blank")
    return value


# ══════════════════════════════════════════════════════════════════════════
# Catalog
# ══════════════════════════════════════════════════════════════════════════

class EquipmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return _clean_name(value)


class EquipmentUpdate(BaseModel):
    """Omitted fields stay untouched; an empty body changes nothing."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("name cannot be null")
        return _clean_name(value)


class EquipmentResponse(BaseModel):
    id: uuid.UUID
    name: str
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EquipmentListFilters(BaseModel):
    q: Optional[str] = Field(default=None, max_length=100, description="Case-insensitive name search")
    include_deleted: bool = False
    sort: EquipmentSort = "created_at"
    order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=settings.page_default_limit, ge=1, le=settings.page_max_limit)
    cursor: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Trip Assignments
# ══════════════════════════════════════════════════════════════════════════

class AssignmentResponse(BaseModel):
    id: uuid.UUID = Field(description="Assignment id")
    equipment_id: uuid.UUID
    name_snapshot: str
    created_at: datetime


class AssignmentList(BaseModel):
    data: List[AssignmentResponse]


class ReplaceAssignmentsRequest(BaseModel):
    equipment_ids: List[uuid.UUID] = Field(
        max_length=100,
        description="Desired full set of equipment ids for this kind",
    )


class AddAssignmentRequest(BaseModel):
    equipment_id: uuid.UUID


class LastUsedEquipment(BaseModel):
    source_trip_id: uuid.UUID
    rods: List[EquipmentSnapshot]
    lures: List[EquipmentSnapshot]
    groundbaits: List[EquipmentSnapshot]
