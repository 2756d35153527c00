"""
FishLog Backend — Weather Schemas
===================================

What:  Manual snapshot input, refresh input and snapshot/hour responses.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field, model_validator

from fishlog.config import settings

WeatherSource = Literal["api", "manual"]
SnapshotSort = Literal["fetched_at", "created_at"]


class WeatherHourInput(BaseModel):
    observed_at: AwareDatetime
    temperature_c: Optional[float] = Field(default=None, ge=-80, le=70)
    pressure_hpa: Optional[int] = Field(default=None, ge=800, le=1200)
    wind_speed_kmh: Optional[float] = Field(default=None, ge=0)
    wind_direction: Optional[int] = Field(default=None, ge=0, le=360)
    humidity_percent: Optional[int] = Field(default=None, ge=0, le=100)
    precipitation_mm: Optional[float] = Field(default=None, ge=0)
    cloud_cover: Optional[int] = Field(default=None, ge=0, le=100)
    weather_icon: Optional[str] = Field(default=None, max_length=50)
    weather_text: Optional[str] = Field(default=None, max_length=255)


class _Period(BaseModel):
    period_start: AwareDatetime
    period_end: AwareDatetime

    @model_validator(mode="after")
    def check_period(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end must be equal to or later than period_start")
        return self


class ManualSnapshotCreate(_Period):
    fetched_at: Optional[AwareDatetime] = None
    hours: List[WeatherHourInput] = Field(min_length=1, max_length=168)


class WeatherRefreshRequest(_Period):
    force: bool = Field(default=False, description="Allow refreshing trips older than the age limit")


class SnapshotListFilters(BaseModel):
    source: Optional[WeatherSource] = None
    sort: SnapshotSort = "fetched_at"
    order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=settings.page_default_limit, ge=1, le=settings.page_max_limit)
    cursor: Optional[str] = None


class SnapshotResponse(BaseModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    source: WeatherSource
    fetched_at: datetime
    period_start: datetime
    period_end: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class WeatherHourResponse(WeatherHourInput):
    id: uuid.UUID
    snapshot_id: uuid.UUID

    model_config = {"from_attributes": True}


class SnapshotDetail(BaseModel):
    snapshot: SnapshotResponse
    hours: Optional[List[WeatherHourResponse]] = None
