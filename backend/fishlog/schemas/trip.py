"""
FishLog Backend — Trip Schemas
================================

What:  Request and response models for trips.
Why:   The API groups the flat location columns into a `location` object and
       never exposes the owner id.

Partial Updates:
    TripUpdate distinguishes "field omitted" from "field explicitly null"
    through `model_fields_set`: `{"ended_at": null}` clears the end time,
    while omitting `ended_at` leaves it untouched.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field

from fishlog.config import settings
from fishlog.schemas.catch import CatchResponse

TripStatus = Literal["draft", "active", "closed"]
TripSort = Literal["started_at", "created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]

TRIP_INCLUDES = frozenset({"rods", "lures", "groundbaits", "catches", "weather_current"})


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90, description="Latitude in decimal degrees")
    lng: float = Field(ge=-180, le=180, description="Longitude in decimal degrees")
    label: Optional[str] = Field(default=None, max_length=255, description="Place name")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════

class TripCreate(BaseModel):
    started_at: AwareDatetime
    ended_at: Optional[AwareDatetime] = None
    status: TripStatus = "draft"
    location: Optional[Location] = None
    copy_equipment_from_last_trip: bool = Field(
        default=False,
        description="Copy rods, lures and groundbaits from the owner's most recent trip",
    )

    model_config = {"extra": "forbid"}


class TripUpdate(BaseModel):
    started_at: Optional[AwareDatetime] = None
    ended_at: Optional[AwareDatetime] = None
    status: Optional[TripStatus] = None
    location: Optional[Location] = None

    model_config = {"extra": "forbid"}


class TripClose(BaseModel):
    ended_at: AwareDatetime


class QuickStartRequest(BaseModel):
    location: Optional[Location] = None
    copy_equipment: bool = False


class TripListFilters(BaseModel):
    status: Optional[TripStatus] = None
    started_from: Optional[AwareDatetime] = None
    started_to: Optional[AwareDatetime] = None
    include_deleted: bool = False
    sort: TripSort = "started_at"
    order: SortOrder = "desc"
    limit: int = Field(default=settings.page_default_limit, ge=1, le=settings.page_max_limit)
    cursor: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════

class TripResponse(BaseModel):
    id: uuid.UUID
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: TripStatus
    location: Optional[Location] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any], **extra: Any) -> "TripResponse":
        location = None
        if row.get("location_lat") is not None and row.get("location_lng") is not None:
            location = Location(
                lat=row["location_lat"],
                lng=row["location_lng"],
                label=row.get("location_label"),
            )
        return cls(
            id=row["id"],
            started_at=row["started_at"],
            ended_at=row.get("ended_at"),
            status=row["status"],
            location=location,
            deleted_at=row.get("deleted_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **extra,
        )


class TripSummary(BaseModel):
    catch_count: int = Field(description="Number of catches recorded on the trip")


class TripListItem(TripResponse):
    summary: TripSummary


class EquipmentSnapshot(BaseModel):
    id: uuid.UUID = Field(description="Equipment id")
    name_snapshot: str = Field(description="Equipment name when it was assigned")


class TripEquipment(BaseModel):
    rods: Optional[List[EquipmentSnapshot]] = None
    lures: Optional[List[EquipmentSnapshot]] = None
    groundbaits: Optional[List[EquipmentSnapshot]] = None


class TripCatch(CatchResponse):
    species_name: Optional[str] = None


class CurrentWeatherRef(BaseModel):
    snapshot_id: uuid.UUID
    source: Literal["api", "manual"]


class TripDetail(TripResponse):
    equipment: Optional[TripEquipment] = None
    catches: Optional[List[TripCatch]] = None
    weather_current: Optional[CurrentWeatherRef] = None


class CopiedEquipment(BaseModel):
    rod_ids: List[uuid.UUID] = Field(default_factory=list)
    lure_ids: List[uuid.UUID] = Field(default_factory=list)
    groundbait_ids: List[uuid.UUID] = Field(default_factory=list)


class QuickStartResponse(BaseModel):
    trip: TripResponse
    copied_equipment: CopiedEquipment
