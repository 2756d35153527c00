"""
FishLog Backend — Weather Snapshot Service
============================================

What:  Weather snapshots of a trip: list, get, "current", manual entry,
       provider refresh, delete.
Why:   A snapshot is a batch of hourly readings from one source. Users may
       type their own (manual) or pull them from the provider (api); the
       manual one wins when both exist.
How:   Periods are clipped to the trip before anything is stored:

           period_start = max(period_start, trip.started_at)
           period_end   = min(period_end, trip.ended_at)      (closed trips only)

       Manual hours outside the trip are dropped. A snapshot whose hours
       cannot be stored is deleted again; an api snapshot is kept with
       whatever hours could be stored.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from fishlog.config import settings
from fishlog.exceptions import BadGatewayError, NotFoundError, ValidationError
from fishlog.result import ServiceResult
from fishlog.schemas.common import Page, PageInfo
from fishlog.schemas.weather import (
    ManualSnapshotCreate,
    SnapshotDetail,
    SnapshotListFilters,
    SnapshotResponse,
    WeatherHourInput,
    WeatherHourResponse,
    WeatherRefreshRequest,
)
from fishlog.services.base import StoreBackedService
from fishlog.services.pagination import PageRequest, paginate
from fishlog.services.weather_provider import AccuWeatherProvider, WeatherProviderError
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)

# Manual entries beat provider data
SOURCE_PRECEDENCE = ("manual", "api")


async def resolve_current_snapshot(rows: RowStore, trip_id: UUID) -> Optional[Row]:
    """Newest manual snapshot of the trip, else newest api snapshot, else None."""
    for source in SOURCE_PRECEDENCE:
        snapshot = await rows.fetch_one(
            QuerySpec("weather_snapshots")
            .eq("trip_id", trip_id)
            .eq("source", source)
            .order("fetched_at", ascending=False)
            .order("id", ascending=False)
        )
        if snapshot is not None:
            return snapshot
    return None


def clip_period(start: datetime, end: datetime, trip: Row) -> Optional[Tuple[datetime, datetime]]:
    """Clip [start, end] to the trip; None when nothing is left."""
    start = max(start, trip["started_at"])
    if trip.get("ended_at") is not None:
        end = min(end, trip["ended_at"])
    if end < start:
        return None
    return start, end


def within_trip(observed_at: datetime, trip: Row) -> bool:
    if observed_at < trip["started_at"]:
        return False
    return trip.get("ended_at") is None or observed_at <= trip["ended_at"]


def hour_rows(snapshot_id: UUID, hours: List[WeatherHourInput]) -> List[Row]:
    return [{"snapshot_id": snapshot_id, **hour.model_dump()} for hour in hours]


class WeatherService(StoreBackedService):
    def __init__(
        self,
        rows: RowStore,
        owner_id: Optional[UUID] = None,
        provider: Optional[AccuWeatherProvider] = None,
    ):
        super().__init__(rows, owner_id)
        self.provider = provider

    async def _load_snapshot(self, snapshot_id: UUID) -> ServiceResult[Row]:
        not_found = ServiceResult.fail(
            NotFoundError("weather_snapshot", snapshot_id, message="Weather snapshot not found")
        )
        try:
            snapshot = await self.rows.fetch_one(QuerySpec("weather_snapshots").eq("id", snapshot_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if snapshot is None:
            return not_found
        trip = await self.load_trip(snapshot["trip_id"])
        if not trip.is_ok:
            return not_found if isinstance(trip.error, NotFoundError) else ServiceResult.fail(trip.error)
        return ServiceResult.ok(snapshot)

    async def _hours(self, snapshot_id: UUID) -> List[WeatherHourResponse]:
        rows = await self.rows.fetch(
            QuerySpec("weather_hours").eq("snapshot_id", snapshot_id).order("observed_at").order("id")
        )
        return [WeatherHourResponse.model_validate(row) for row in rows]

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_snapshots(
        self,
        trip_id: UUID,
        filters: SnapshotListFilters,
    ) -> ServiceResult[Page[SnapshotResponse]]:
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        spec = QuerySpec("weather_snapshots").eq("trip_id", trip_id)
        if filters.source is not None:
            spec = spec.eq("source", filters.source)
        page = await paginate(
            self.rows,
            spec,
            PageRequest(filters.sort, filters.order, filters.limit, filters.cursor),
        )
        if not page.is_ok:
            return ServiceResult.fail(page.error)
        rows, next_cursor = page.data
        return ServiceResult.ok(
            Page[SnapshotResponse](
                data=[SnapshotResponse.model_validate(row) for row in rows],
                page=PageInfo(limit=filters.limit, next_cursor=next_cursor),
            )
        )

    async def get_snapshot(self, snapshot_id: UUID, include_hours: bool = False) -> ServiceResult[SnapshotDetail]:
        loaded = await self._load_snapshot(snapshot_id)
        if not loaded.is_ok:
            return ServiceResult.fail(loaded.error)
        hours = None
        if include_hours:
            try:
                hours = await self._hours(snapshot_id)
            except StoreError as exc:
                return self.store_failure(exc)
        return ServiceResult.ok(
            SnapshotDetail(snapshot=SnapshotResponse.model_validate(loaded.data), hours=hours)
        )

    async def get_current(self, trip_id: UUID) -> ServiceResult[SnapshotDetail]:
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)
        try:
            snapshot = await resolve_current_snapshot(self.rows, trip_id)
            if snapshot is None:
                return ServiceResult.fail(
                    NotFoundError("weather_snapshot", message="No weather snapshots for this trip")
                )
            hours = await self._hours(snapshot["id"])
        except StoreError as exc:
            return self.store_failure(exc)
        return ServiceResult.ok(SnapshotDetail(snapshot=SnapshotResponse.model_validate(snapshot), hours=hours))

    # ── Commands ──────────────────────────────────────────────────────────

    async def _insert_snapshot(self, trip_id: UUID, source: str, fetched_at: datetime, period) -> Row:
        inserted = await self.rows.insert(
            "weather_snapshots",
            [
                {
                    "trip_id": trip_id,
                    "source": source,
                    "fetched_at": fetched_at,
                    "period_start": period[0],
                    "period_end": period[1],
                }
            ],
        )
        return inserted[0]

    async def create_manual(self, trip_id: UUID, data: ManualSnapshotCreate) -> ServiceResult[SnapshotDetail]:
        """Store user-entered hours, clipped to the trip."""
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        period = clip_period(data.period_start, data.period_end, trip.data)
        if period is None:
            return ServiceResult.fail(
                ValidationError("Weather period lies outside the trip", field="period_start")
            )
        hours = [hour for hour in data.hours if within_trip(hour.observed_at, trip.data)]
        if not hours:
            return ServiceResult.fail(
                ValidationError("No weather hour falls within the trip", field="hours")
            )

        try:
            snapshot = await self._insert_snapshot(
                trip_id, "manual", data.fetched_at or datetime.now(timezone.utc), period
            )
        except StoreError as exc:
            return self.store_failure(exc)

        try:
            stored = await self.rows.insert("weather_hours", hour_rows(snapshot["id"], hours))
        except StoreError as exc:
            logger.warning("Weather hours insert failed, removing snapshot %s", snapshot["id"])
            try:
                await self.rows.delete(QuerySpec("weather_snapshots").eq("id", snapshot["id"]))
            except StoreError as cleanup_exc:
                logger.error("Could not remove orphan snapshot %s: %s", snapshot["id"], cleanup_exc)
            return self.store_failure(exc)

        logger.info("Manual weather snapshot %s created for trip %s (%d hours)", snapshot["id"], trip_id, len(stored))
        return ServiceResult.ok(
            SnapshotDetail(
                snapshot=SnapshotResponse.model_validate(snapshot),
                hours=[WeatherHourResponse.model_validate(row) for row in stored],
            )
        )

    async def refresh(self, trip_id: UUID, data: WeatherRefreshRequest) -> ServiceResult[SnapshotDetail]:
        """
        Pull hourly weather for the trip's location from the provider.

        The trip needs a location. Trips that started more than
        WEATHER_REFRESH_MAX_AGE_HOURS ago need `force`.
        """
        if self.provider is None:
            raise RuntimeError("WeatherService.refresh requires a weather provider")

        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)
        row = trip.data

        if row.get("location_lat") is None or row.get("location_lng") is None:
            return ServiceResult.fail(
                ValidationError("The trip needs a location to refresh weather", field="location")
            )

        max_age = timedelta(hours=settings.weather_refresh_max_age_hours)
        if datetime.now(timezone.utc) - row["started_at"] > max_age and not data.force:
            return ServiceResult.fail(
                ValidationError(
                    f"The trip started more than {settings.weather_refresh_max_age_hours}h ago; "
                    "use force or enter the weather manually",
                    field="force",
                )
            )

        period = clip_period(data.period_start, data.period_end, row)
        if period is None:
            return ServiceResult.fail(
                ValidationError("Weather period lies outside the trip", field="period_start")
            )

        try:
            hours = await self.provider.fetch_hourly(row["location_lat"], row["location_lng"])
        except WeatherProviderError as exc:
            return ServiceResult.fail(
                BadGatewayError(exc.message, {"provider_code": exc.code, "status_code": exc.status_code})
            )

        try:
            snapshot = await self._insert_snapshot(trip_id, "api", datetime.now(timezone.utc), period)
        except StoreError as exc:
            return self.store_failure(exc)

        stored: List[Row] = []
        if hours:
            try:
                stored = await self.rows.insert("weather_hours", hour_rows(snapshot["id"], hours))
            except StoreError as exc:
                logger.warning("Keeping api snapshot %s without hours: %s", snapshot["id"], exc)

        logger.info("API weather snapshot %s created for trip %s (%d hours)", snapshot["id"], trip_id, len(stored))
        return ServiceResult.ok(
            SnapshotDetail(
                snapshot=SnapshotResponse.model_validate(snapshot),
                hours=[WeatherHourResponse.model_validate(hour) for hour in stored],
            )
        )

    async def delete_snapshot(self, snapshot_id: UUID) -> ServiceResult[None]:
        loaded = await self._load_snapshot(snapshot_id)
        if not loaded.is_ok:
            return ServiceResult.fail(loaded.error)
        try:
            deleted = await self.rows.delete(QuerySpec("weather_snapshots").eq("id", snapshot_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if not deleted:
            return ServiceResult.fail(
                NotFoundError("weather_snapshot", snapshot_id, message="Weather snapshot not found")
            )
        logger.info("Weather snapshot deleted: %s", snapshot_id)
        return ServiceResult.ok(None)
