"""
FishLog Backend — Catch Service
=================================

What:  Catch CRUD scoped to a trip.
Why:   A catch must happen during its trip:

           trip.started_at <= caught_at <= trip.ended_at   (no upper bound while open)

       Both boundaries are inclusive. The check only runs when caught_at is
       part of the write; an update that leaves caught_at alone is not
       re-validated against a trip that may have been edited since.

Name Snapshots:
    Resolved here, explicitly, from the referenced lure/groundbait:
    on create for any reference given, and on update only when the
    reference actually changes. Clearing a reference clears its snapshot.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from fishlog.exceptions import NotFoundError, ValidationError
from fishlog.result import ServiceResult
from fishlog.schemas.catch import CatchCreate, CatchListFilters, CatchResponse, CatchUpdate
from fishlog.schemas.common import Page, PageInfo
from fishlog.services.base import StoreBackedService
from fishlog.services.equipment_service import EQUIPMENT_KINDS, resolve_equipment_names
from fishlog.services.pagination import PageRequest, paginate
from fishlog.store.base import Row, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)

# Catch column → equipment kind it references
EQUIPMENT_REFERENCES = {
    "lure_id": EQUIPMENT_KINDS["lures"],
    "groundbait_id": EQUIPMENT_KINDS["groundbaits"],
}


def check_caught_at(caught_at: datetime, trip: Row) -> Optional[ValidationError]:
    if caught_at < trip["started_at"]:
        return ValidationError(
            "caught_at must be equal to or later than the trip's started_at",
            field="caught_at",
        )
    if trip.get("ended_at") is not None and caught_at > trip["ended_at"]:
        return ValidationError(
            "caught_at must be equal to or earlier than the trip's ended_at",
            field="caught_at",
        )
    return None


class CatchService(StoreBackedService):
    async def _load(self, catch_id: UUID) -> ServiceResult[Tuple[Row, Row]]:
        """The catch and its trip; a catch on an invisible trip is not found."""
        not_found = ServiceResult.fail(NotFoundError("catch", catch_id, message="Catch not found"))
        try:
            catch = await self.rows.fetch_one(QuerySpec("catches").eq("id", catch_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if catch is None:
            return not_found
        trip = await self.load_trip(catch["trip_id"])
        if not trip.is_ok:
            return not_found if isinstance(trip.error, NotFoundError) else ServiceResult.fail(trip.error)
        return ServiceResult.ok((catch, trip.data))

    async def _check_species(self, species_id: UUID) -> Optional[ValidationError]:
        species = await self.rows.fetch_one(QuerySpec("fish_species").eq("id", species_id))
        if species is None:
            return ValidationError("Fish species not found", field="species_id")
        return None

    async def _snapshot(self, column: str, equipment_id: Optional[UUID], trip: Row) -> ServiceResult[Optional[str]]:
        if equipment_id is None:
            return ServiceResult.ok(None)
        kind = EQUIPMENT_REFERENCES[column]
        names = await resolve_equipment_names(self.rows, kind, [equipment_id], trip["user_id"])
        if not names.is_ok:
            return ServiceResult.fail(names.error)
        return ServiceResult.ok(names.data[equipment_id])

    # ── Queries ───────────────────────────────────────────────────────────

    async def list(self, trip_id: UUID, filters: CatchListFilters) -> ServiceResult[Page[CatchResponse]]:
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        spec = QuerySpec("catches").eq("trip_id", trip_id)
        if filters.caught_from is not None:
            spec = spec.gte("caught_at", filters.caught_from)
        if filters.caught_to is not None:
            spec = spec.lte("caught_at", filters.caught_to)
        if filters.species_id is not None:
            spec = spec.eq("species_id", filters.species_id)

        page = await paginate(
            self.rows,
            spec,
            PageRequest(filters.sort, filters.order, filters.limit, filters.cursor),
        )
        if not page.is_ok:
            return ServiceResult.fail(page.error)
        rows, next_cursor = page.data
        return ServiceResult.ok(
            Page[CatchResponse](
                data=[CatchResponse.model_validate(row) for row in rows],
                page=PageInfo(limit=filters.limit, next_cursor=next_cursor),
            )
        )

    async def get_by_id(self, catch_id: UUID) -> ServiceResult[CatchResponse]:
        loaded = await self._load(catch_id)
        if not loaded.is_ok:
            return ServiceResult.fail(loaded.error)
        return ServiceResult.ok(CatchResponse.model_validate(loaded.data[0]))

    # ── Commands ──────────────────────────────────────────────────────────

    async def create(self, trip_id: UUID, data: CatchCreate) -> ServiceResult[CatchResponse]:
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        error = check_caught_at(data.caught_at, trip.data)
        if error is not None:
            return ServiceResult.fail(error)

        values: Row = {
            "trip_id": trip_id,
            "caught_at": data.caught_at,
            "species_id": data.species_id,
            "weight_g": data.weight_g,
            "length_mm": data.length_mm,
        }
        try:
            error = await self._check_species(data.species_id)
            if error is not None:
                return ServiceResult.fail(error)
            for column, kind in EQUIPMENT_REFERENCES.items():
                reference = getattr(data, column)
                snapshot = await self._snapshot(column, reference, trip.data)
                if not snapshot.is_ok:
                    return ServiceResult.fail(snapshot.error)
                values[column] = reference
                values[kind.snapshot_column] = snapshot.data
            inserted = await self.rows.insert("catches", [values])
        except StoreError as exc:
            return self.store_failure(exc)

        logger.info("Catch created: %s on trip %s", inserted[0]["id"], trip_id)
        return ServiceResult.ok(CatchResponse.model_validate(inserted[0]))

    async def update(self, catch_id: UUID, changes: CatchUpdate) -> ServiceResult[CatchResponse]:
        provided = changes.model_fields_set
        if not provided:
            return ServiceResult.fail(ValidationError("No fields to update"))
        for field in ("caught_at", "species_id"):
            if field in provided and getattr(changes, field) is None:
                return ServiceResult.fail(ValidationError(f"{field} cannot be null", field=field))

        loaded = await self._load(catch_id)
        if not loaded.is_ok:
            return ServiceResult.fail(loaded.error)
        catch, trip = loaded.data

        if "caught_at" in provided:
            error = check_caught_at(changes.caught_at, trip)
            if error is not None:
                return ServiceResult.fail(error)

        values: Row = {field: getattr(changes, field) for field in provided}
        try:
            if "species_id" in provided:
                error = await self._check_species(changes.species_id)
                if error is not None:
                    return ServiceResult.fail(error)
            for column, kind in EQUIPMENT_REFERENCES.items():
                if column not in provided or values[column] == catch.get(column):
                    continue
                snapshot = await self._snapshot(column, values[column], trip)
                if not snapshot.is_ok:
                    return ServiceResult.fail(snapshot.error)
                values[kind.snapshot_column] = snapshot.data

            updated = await self.rows.update(QuerySpec("catches").eq("id", catch_id), values)
        except StoreError as exc:
            return self.store_failure(exc)
        if not updated:
            return ServiceResult.fail(NotFoundError("catch", catch_id, message="Catch not found"))
        return ServiceResult.ok(CatchResponse.model_validate(updated[0]))

    async def delete(self, catch_id: UUID) -> ServiceResult[None]:
        loaded = await self._load(catch_id)
        if not loaded.is_ok:
            return ServiceResult.fail(loaded.error)
        try:
            deleted = await self.rows.delete(QuerySpec("catches").eq("id", catch_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if not deleted:
            return ServiceResult.fail(NotFoundError("catch", catch_id, message="Catch not found"))
        logger.info("Catch deleted: %s", catch_id)
        return ServiceResult.ok(None)
