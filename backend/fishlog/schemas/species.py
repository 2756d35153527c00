"""
FishLog Backend — Fish Species Schemas
========================================

What:  The shared, read-only species dictionary catches refer to.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from fishlog.config import settings


class FishSpeciesResponse(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime


class SpeciesListFilters(BaseModel):
    q: Optional[str] = Field(default=None, max_length=100, description="Case-insensitive name search")
    sort: Literal["name", "created_at"] = "name"
    order: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=settings.page_default_limit, ge=1, le=settings.page_max_limit)
    cursor: Optional[str] = None
