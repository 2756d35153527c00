"""
FishLog Backend — Route Dependencies
======================================

What:  FastAPI dependencies that build services for one request.
How:   Row store per request (one AsyncSession each); blob store and weather
       provider are process-wide because they hold HTTP connection pools.

Authentication:
    Sessions are handled upstream (API gateway / auth proxy), which forwards
    the authenticated user id in the X-User-Id header. Requests without a
    valid id are rejected with 401 before any service runs.
"""

from functools import lru_cache
from typing import Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fishlog.config import settings
from fishlog.database import get_db_session
from fishlog.services.catch_service import CatchService
from fishlog.services.equipment_catalog_service import EquipmentCatalogService
from fishlog.services.equipment_service import EquipmentService
from fishlog.services.photo_service import PhotoService
from fishlog.services.species_service import FishSpeciesService
from fishlog.services.trip_service import TripService
from fishlog.services.weather_provider import AccuWeatherProvider
from fishlog.services.weather_service import WeatherService
from fishlog.store.base import BlobStore, RowStore
from fishlog.store.local_blob import LocalBlobStore
from fishlog.store.sqlalchemy_store import SqlAlchemyRowStore
from fishlog.store.supabase_blob import SupabaseBlobStore


async def get_current_user_id(x_user_id: str = Header(default="")) -> UUID:
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Missing or invalid X-User-Id header") from None


async def get_row_store(session: AsyncSession = Depends(get_db_session)) -> RowStore:
    return SqlAlchemyRowStore(session)


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    if settings.blob_backend == "supabase":
        return SupabaseBlobStore()
    return LocalBlobStore()


@lru_cache(maxsize=1)
def get_weather_provider() -> AccuWeatherProvider:
    return AccuWeatherProvider()


def get_trip_service(
    rows: RowStore = Depends(get_row_store),
    user_id: UUID = Depends(get_current_user_id),
) -> TripService:
    return TripService(rows, owner_id=user_id)


def get_catch_service(
    rows: RowStore = Depends(get_row_store),
    user_id: UUID = Depends(get_current_user_id),
) -> CatchService:
    return CatchService(rows, owner_id=user_id)


def get_equipment_service(
    rows: RowStore = Depends(get_row_store),
    user_id: UUID = Depends(get_current_user_id),
) -> EquipmentService:
    return EquipmentService(rows, owner_id=user_id)


def get_weather_service(
    rows: RowStore = Depends(get_row_store),
    user_id: UUID = Depends(get_current_user_id),
    provider: AccuWeatherProvider = Depends(get_weather_provider),
) -> WeatherService:
    return WeatherService(rows, owner_id=user_id, provider=provider)


def get_photo_service(
    rows: RowStore = Depends(get_row_store),
    blobs: BlobStore = Depends(get_blob_store),
) -> PhotoService:
    return PhotoService(rows, blobs)


def catalog_service_for(kind: str) -> Callable[..., EquipmentCatalogService]:
    """Dependency building the catalog service of one fixed equipment kind."""

    def get_catalog_service(
        rows: RowStore = Depends(get_row_store),
        user_id: UUID = Depends(get_current_user_id),
    ) -> EquipmentCatalogService:
        return EquipmentCatalogService(rows, kind, owner_id=user_id)

    return get_catalog_service


def get_species_service(
    rows: RowStore = Depends(get_row_store),
    _user_id: UUID = Depends(get_current_user_id),
) -> FishSpeciesService:
    return FishSpeciesService(rows)
