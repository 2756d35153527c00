"""
FishLog Backend — Store-Backed Service Base
=============================================

What:  Shared constructor and trip-visibility helpers for the entity services.
Why:   Every service needs "load this trip if the caller may see it"; writing
       it once keeps the visibility rule (not soft-deleted, owned by the
       principal when one is given) identical everywhere.

Ownership:
    `owner_id` is the already-authenticated principal. When set, every trip
    lookup is scoped to it, so another user's trip looks exactly like a
    missing one (not_found). When None the service trusts the store's own
    row-level access control (internal callers, tests).
"""

from typing import Any, Optional
from uuid import UUID

from fishlog.exceptions import NotFoundError
from fishlog.result import ServiceResult
from fishlog.services.error_mapper import map_store_error
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import QuerySpec


class StoreBackedService:
    def __init__(self, rows: RowStore, owner_id: Optional[UUID] = None):
        self.rows = rows
        self.owner_id = owner_id

    def trips_query(self, include_deleted: bool = False) -> QuerySpec:
        spec = QuerySpec("trips")
        if not include_deleted:
            spec = spec.is_null("deleted_at")
        if self.owner_id is not None:
            spec = spec.eq("user_id", self.owner_id)
        return spec

    async def load_trip(self, trip_id: Any) -> ServiceResult[Row]:
        try:
            row = await self.rows.fetch_one(self.trips_query().eq("id", trip_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if row is None:
            return ServiceResult.fail(NotFoundError("trip", trip_id, message="Trip not found"))
        return ServiceResult.ok(row)

    @staticmethod
    def store_failure(exc: StoreError) -> ServiceResult:
        return ServiceResult.fail(map_store_error(exc))
