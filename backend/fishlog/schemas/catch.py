"""
FishLog Backend — Catch Schemas
=================================

What:  Request and response models for catches.
Why:   Name snapshots are never accepted from clients; the service resolves
       them from the referenced lure/groundbait.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field

from fishlog.config import settings

CatchSort = Literal["caught_at", "created_at"]


class CatchCreate(BaseModel):
    caught_at: AwareDatetime
    species_id: uuid.UUID
    lure_id: Optional[uuid.UUID] = None
    groundbait_id: Optional[uuid.UUID] = None
    weight_g: Optional[int] = Field(default=None, gt=0, description="Weight in grams")
    length_mm: Optional[int] = Field(default=None, gt=0, description="Length in millimeters")

    model_config = {"extra": "forbid"}


class CatchUpdate(BaseModel):
    caught_at: Optional[AwareDatetime] = None
    species_id: Optional[uuid.UUID] = None
    lure_id: Optional[uuid.UUID] = None
    groundbait_id: Optional[uuid.UUID] = None
    weight_g: Optional[int] = Field(default=None, gt=0)
    length_mm: Optional[int] = Field(default=None, gt=0)

    model_config = {"extra": "forbid"}


class CatchListFilters(BaseModel):
    caught_from: Optional[AwareDatetime] = None
    caught_to: Optional[AwareDatetime] = None
    species_id: Optional[uuid.UUID] = None
    sort: CatchSort = "caught_at"
    order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=settings.page_default_limit, ge=1, le=settings.page_max_limit)
    cursor: Optional[str] = None


class CatchResponse(BaseModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    caught_at: datetime
    species_id: uuid.UUID
    lure_id: Optional[uuid.UUID] = None
    lure_name_snapshot: Optional[str] = None
    groundbait_id: Optional[uuid.UUID] = None
    groundbait_name_snapshot: Optional[str] = None
    weight_g: Optional[int] = None
    length_mm: Optional[int] = None
    photo_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
