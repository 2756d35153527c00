"""
FishLog Backend — Trip Service
================================

What:  Trip CRUD and lifecycle: list, get with includes, create, quick start,
       update, close, soft delete.
Why:   Trips carry the two invariants every other entity leans on:

           ended_at >= started_at        (when both are set)
           status == closed  ⇒  ended_at is set

How:   update() and close() MERGE the proposed change with the stored row
       first and validate the merged state, so `{"status": "closed"}` alone is
       checked against the stored ended_at. Validation runs before any write.

Lifecycle:
    draft → active → closed is the usual path, but no transition table is
    enforced: callers may move freely between states and may close an
    already closed trip, as long as the invariants hold.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from fishlog.exceptions import NotFoundError, ValidationError
from fishlog.result import ServiceResult
from fishlog.schemas.common import Page, PageInfo
from fishlog.schemas.trip import (
    TRIP_INCLUDES,
    CopiedEquipment,
    CurrentWeatherRef,
    Location,
    QuickStartRequest,
    QuickStartResponse,
    TripCatch,
    TripCreate,
    TripDetail,
    TripEquipment,
    TripListFilters,
    TripListItem,
    TripResponse,
    TripSummary,
    TripUpdate,
)
from fishlog.services.base import StoreBackedService
from fishlog.services.equipment_service import EQUIPMENT_KINDS, EquipmentService
from fishlog.services.pagination import PageRequest, paginate
from fishlog.services.weather_service import resolve_current_snapshot
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)


def check_trip_state(
    started_at: datetime,
    ended_at: Optional[datetime],
    status: str,
) -> Optional[ValidationError]:
    """Return the first violated trip invariant, or None."""
    if ended_at is not None and ended_at < started_at:
        return ValidationError("ended_at must be equal to or later than started_at", field="ended_at")
    if status == "closed" and ended_at is None:
        return ValidationError("A closed trip requires ended_at", field="ended_at")
    return None


def location_columns(location: Optional[Location]) -> Dict[str, Any]:
    if location is None:
        return {"location_lat": None, "location_lng": None, "location_label": None}
    return {
        "location_lat": location.lat,
        "location_lng": location.lng,
        "location_label": location.label,
    }


class TripService(StoreBackedService):
    def __init__(
        self,
        rows: RowStore,
        owner_id: Optional[UUID] = None,
        equipment: Optional[EquipmentService] = None,
    ):
        super().__init__(rows, owner_id)
        self.equipment = equipment or EquipmentService(rows, owner_id)

    def _require_owner(self) -> UUID:
        if self.owner_id is None:
            raise RuntimeError("Creating a trip requires an owner_id")
        return self.owner_id

    # ── Queries ───────────────────────────────────────────────────────────

    async def list(self, filters: TripListFilters) -> ServiceResult[Page[TripListItem]]:
        spec = self.trips_query(include_deleted=filters.include_deleted)
        if filters.status is not None:
            spec = spec.eq("status", filters.status)
        if filters.started_from is not None:
            spec = spec.gte("started_at", filters.started_from)
        if filters.started_to is not None:
            spec = spec.lte("started_at", filters.started_to)

        page = await paginate(
            self.rows,
            spec,
            PageRequest(filters.sort, filters.order, filters.limit, filters.cursor),
        )
        if not page.is_ok:
            return ServiceResult.fail(page.error)
        rows, next_cursor = page.data

        counts: Dict[Any, int] = {}
        if rows:
            try:
                counts = await self.rows.count_by(
                    QuerySpec("catches").in_("trip_id", [row["id"] for row in rows]),
                    "trip_id",
                )
            except StoreError as exc:
                return self.store_failure(exc)

        items = [
            TripListItem.from_row(row, summary=TripSummary(catch_count=counts.get(row["id"], 0)))
            for row in rows
        ]
        return ServiceResult.ok(
            Page[TripListItem](data=items, page=PageInfo(limit=filters.limit, next_cursor=next_cursor))
        )

    async def get_by_id(self, trip_id: UUID, includes: Iterable[str] = ()) -> ServiceResult[TripDetail]:
        """
        One trip plus the requested related collections.

        includes: any of rods, lures, groundbaits, catches, weather_current.
        Each include is resolved independently; weather_current is the newest
        manual snapshot, else the newest api snapshot, else null.
        """
        requested = set(includes)
        unknown = requested - TRIP_INCLUDES
        if unknown:
            return ServiceResult.fail(
                ValidationError(
                    f"Unknown include: {', '.join(sorted(unknown))}",
                    field="include",
                    context={"allowed": sorted(TRIP_INCLUDES)},
                )
            )

        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        extra: Dict[str, Any] = {}
        try:
            kinds = [kind for name, kind in EQUIPMENT_KINDS.items() if name in requested]
            if kinds:
                sets = {}
                for kind in kinds:
                    rows = await self.rows.fetch(
                        QuerySpec(kind.assignment_table).eq("trip_id", trip_id).order("created_at").order("id")
                    )
                    sets[kind.name] = [EquipmentService.to_snapshot(kind, row) for row in rows]
                extra["equipment"] = TripEquipment(**sets)

            if "catches" in requested:
                extra["catches"] = await self._catches_with_species(trip_id)

            if "weather_current" in requested:
                snapshot = await resolve_current_snapshot(self.rows, trip_id)
                extra["weather_current"] = (
                    CurrentWeatherRef(snapshot_id=snapshot["id"], source=snapshot["source"])
                    if snapshot is not None
                    else None
                )
        except StoreError as exc:
            return self.store_failure(exc)

        return ServiceResult.ok(TripDetail.from_row(trip.data, **extra))

    async def _catches_with_species(self, trip_id: UUID):
        catches = await self.rows.fetch(
            QuerySpec("catches").eq("trip_id", trip_id).order("caught_at", ascending=False).order("id", ascending=False)
        )
        species_ids = {row["species_id"] for row in catches}
        names = {}
        if species_ids:
            species = await self.rows.fetch(QuerySpec("fish_species").in_("id", species_ids))
            names = {row["id"]: row["name"] for row in species}
        return [
            TripCatch.model_validate({**row, "species_name": names.get(row["species_id"])})
            for row in catches
        ]

    # ── Commands ──────────────────────────────────────────────────────────

    async def _insert_trip(self, values: Row) -> ServiceResult[Row]:
        try:
            inserted = await self.rows.insert("trips", [values])
        except StoreError as exc:
            return self.store_failure(exc)
        logger.info("Trip created: %s (status=%s)", inserted[0]["id"], inserted[0]["status"])
        return ServiceResult.ok(inserted[0])

    async def _copy_equipment(self, owner_id: UUID, trip_id: UUID) -> CopiedEquipment:
        # Trip row already exists; copy failures are logged, not returned.
        copied = await self.equipment.copy_from_last_trip(owner_id, trip_id)
        if not copied.is_ok:
            logger.warning("Equipment copy into trip %s failed: %s", trip_id, copied.error.message)
            return CopiedEquipment()
        return copied.data

    async def create(self, data: TripCreate) -> ServiceResult[TripResponse]:
        owner_id = self._require_owner()
        error = check_trip_state(data.started_at, data.ended_at, data.status)
        if error is not None:
            return ServiceResult.fail(error)

        created = await self._insert_trip(
            {
                "user_id": owner_id,
                "started_at": data.started_at,
                "ended_at": data.ended_at,
                "status": data.status,
                **location_columns(data.location),
            }
        )
        if not created.is_ok:
            return ServiceResult.fail(created.error)
        if data.copy_equipment_from_last_trip:
            await self._copy_equipment(owner_id, created.data["id"])
        return ServiceResult.ok(TripResponse.from_row(created.data))

    async def quick_start(self, data: QuickStartRequest) -> ServiceResult[QuickStartResponse]:
        """Start an active trip now, optionally with the last trip's equipment."""
        owner_id = self._require_owner()
        created = await self._insert_trip(
            {
                "user_id": owner_id,
                "started_at": datetime.now(timezone.utc),
                "ended_at": None,
                "status": "active",
                **location_columns(data.location),
            }
        )
        if not created.is_ok:
            return ServiceResult.fail(created.error)

        copied = CopiedEquipment()
        if data.copy_equipment:
            copied = await self._copy_equipment(owner_id, created.data["id"])
        return ServiceResult.ok(
            QuickStartResponse(trip=TripResponse.from_row(created.data), copied_equipment=copied)
        )

    async def _write(self, trip_id: UUID, values: Row) -> ServiceResult[TripResponse]:
        try:
            updated = await self.rows.update(self.trips_query().eq("id", trip_id), values)
        except StoreError as exc:
            return self.store_failure(exc)
        if not updated:
            return ServiceResult.fail(NotFoundError("trip", trip_id, message="Trip not found"))
        return ServiceResult.ok(TripResponse.from_row(updated[0]))

    async def update(self, trip_id: UUID, changes: TripUpdate) -> ServiceResult[TripResponse]:
        provided = changes.model_fields_set
        if not provided:
            return ServiceResult.fail(ValidationError("No fields to update"))
        for field in ("started_at", "status"):
            if field in provided and getattr(changes, field) is None:
                return ServiceResult.fail(ValidationError(f"{field} cannot be null", field=field))

        existing = await self.load_trip(trip_id)
        if not existing.is_ok:
            return ServiceResult.fail(existing.error)
        current = existing.data

        merged = {
            field: getattr(changes, field) if field in provided else current[field]
            for field in ("started_at", "ended_at", "status")
        }
        error = check_trip_state(merged["started_at"], merged["ended_at"], merged["status"])
        if error is not None:
            return ServiceResult.fail(error)

        values: Row = {field: merged[field] for field in ("started_at", "ended_at", "status") if field in provided}
        if "location" in provided:
            values.update(location_columns(changes.location))
        return await self._write(trip_id, values)

    async def close(self, trip_id: UUID, ended_at: datetime) -> ServiceResult[TripResponse]:
        existing = await self.load_trip(trip_id)
        if not existing.is_ok:
            return ServiceResult.fail(existing.error)
        error = check_trip_state(existing.data["started_at"], ended_at, "closed")
        if error is not None:
            return ServiceResult.fail(error)
        return await self._write(trip_id, {"status": "closed", "ended_at": ended_at})

    async def soft_delete(self, trip_id: UUID) -> ServiceResult[None]:
        try:
            updated = await self.rows.update(
                self.trips_query().eq("id", trip_id),
                {"deleted_at": datetime.now(timezone.utc)},
            )
        except StoreError as exc:
            return self.store_failure(exc)
        if not updated:
            return ServiceResult.fail(NotFoundError("trip", trip_id, message="Trip not found"))
        logger.info("Trip soft-deleted: %s", trip_id)
        return ServiceResult.ok(None)
