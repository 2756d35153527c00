"""
FishLog Backend — Trip Equipment Reconciliation
=================================================

What:  Keeps a trip's rod / lure / groundbait assignment sets in sync with
       what the caller wants, and copies sets between trips.
Why:   Replacing a set by "delete everything, insert everything" rewrites
       rows that did not change and can briefly violate the
       (trip_id, equipment_id) uniqueness constraint under concurrent edits.
How:   replace_assignments() diffs current vs desired equipment ids:

           to_delete = current - desired     (one bulk delete, issued first)
           to_insert = desired - current     (one bulk insert, issued second)

       and returns the list read back from the store. Calling it twice with
       the same ids performs no writes the second time.

Name Snapshots:
    New assignments copy the equipment's current name into
    <kind>_name_snapshot. Copying from a previous trip reuses that trip's
    snapshots verbatim; it never re-reads the current equipment names.

Equipment Checks (before any write):
    missing       → validation_error
    other owner   → equipment_owner_mismatch
    soft-deleted  → equipment_soft_deleted
    already there → conflict (add only)
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from fishlog.exceptions import (
    ConflictError,
    EquipmentOwnerMismatchError,
    EquipmentSoftDeletedError,
    NotFoundError,
    ValidationError,
)
from fishlog.result import ServiceResult
from fishlog.schemas.equipment import AssignmentResponse, LastUsedEquipment
from fishlog.schemas.trip import CopiedEquipment, EquipmentSnapshot
from fishlog.services.base import StoreBackedService
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquipmentKind:
    name: str
    singular: str

    @property
    def table(self) -> str:
        return self.name

    @property
    def assignment_table(self) -> str:
        return f"trip_{self.name}"

    @property
    def id_column(self) -> str:
        return f"{self.singular}_id"

    @property
    def snapshot_column(self) -> str:
        return f"{self.singular}_name_snapshot"

    @property
    def label(self) -> str:
        return self.singular.capitalize()


EQUIPMENT_KINDS: Dict[str, EquipmentKind] = {
    kind.name: kind
    for kind in (
        EquipmentKind("rods", "rod"),
        EquipmentKind("lures", "lure"),
        EquipmentKind("groundbaits", "groundbait"),
    )
}


def get_kind(name: str) -> EquipmentKind:
    try:
        return EQUIPMENT_KINDS[name]
    except KeyError:
        raise ValueError(f"Unknown equipment kind '{name}'") from None


async def resolve_equipment_names(
    rows: RowStore,
    kind: EquipmentKind,
    equipment_ids: Iterable[UUID],
    owner_id: UUID,
) -> ServiceResult[Dict[UUID, str]]:
    """
    Current names for `equipment_ids`, checked for existence, ownership and
    soft deletion. Raises StoreError from the underlying fetch.
    """
    wanted = list(dict.fromkeys(equipment_ids))
    if not wanted:
        return ServiceResult.ok({})

    found = {row["id"]: row for row in await rows.fetch(QuerySpec(kind.table).in_("id", wanted))}
    names: Dict[UUID, str] = {}
    for equipment_id in wanted:
        row = found.get(equipment_id)
        context = {"kind": kind.name, "equipment_id": str(equipment_id)}
        if row is None:
            return ServiceResult.fail(
                ValidationError(f"{kind.label} not found", field=kind.id_column, context=context)
            )
        if row["user_id"] != owner_id:
            return ServiceResult.fail(
                EquipmentOwnerMismatchError(f"{kind.label} belongs to another user", context)
            )
        if row.get("deleted_at") is not None:
            return ServiceResult.fail(
                EquipmentSoftDeletedError(f"{kind.label} '{row['name']}' has been deleted", context)
            )
        names[equipment_id] = row["name"]
    return ServiceResult.ok(names)


class EquipmentService(StoreBackedService):
    """Assignment sets of one trip, per equipment kind."""

    def _assignments(self, trip_id: UUID, kind: EquipmentKind) -> QuerySpec:
        return (
            QuerySpec(kind.assignment_table)
            .eq("trip_id", trip_id)
            .order("created_at")
            .order("id")
        )

    @staticmethod
    def to_response(kind: EquipmentKind, row: Row) -> AssignmentResponse:
        return AssignmentResponse(
            id=row["id"],
            equipment_id=row[kind.id_column],
            name_snapshot=row[kind.snapshot_column],
            created_at=row["created_at"],
        )

    @staticmethod
    def to_snapshot(kind: EquipmentKind, row: Row) -> EquipmentSnapshot:
        return EquipmentSnapshot(id=row[kind.id_column], name_snapshot=row[kind.snapshot_column])

    async def list(self, trip_id: UUID, kind_name: str) -> ServiceResult[List[AssignmentResponse]]:
        kind = get_kind(kind_name)
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)
        try:
            rows = await self.rows.fetch(self._assignments(trip_id, kind))
        except StoreError as exc:
            return self.store_failure(exc)
        return ServiceResult.ok([self.to_response(kind, row) for row in rows])

    async def replace_assignments(
        self,
        trip_id: UUID,
        kind_name: str,
        desired_ids: Iterable[UUID],
    ) -> ServiceResult[List[AssignmentResponse]]:
        """Make the trip's `kind` set equal to `desired_ids` with minimal writes."""
        kind = get_kind(kind_name)
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)

        desired = list(dict.fromkeys(desired_ids))
        try:
            current = await self.rows.fetch(self._assignments(trip_id, kind))
            current_ids = {row[kind.id_column] for row in current}
            to_delete = [row["id"] for row in current if row[kind.id_column] not in desired]
            to_insert = [equipment_id for equipment_id in desired if equipment_id not in current_ids]

            names = await resolve_equipment_names(self.rows, kind, to_insert, trip.data["user_id"])
            if not names.is_ok:
                return ServiceResult.fail(names.error)

            if to_delete:
                await self.rows.delete(
                    QuerySpec(kind.assignment_table).eq("trip_id", trip_id).in_("id", to_delete)
                )
            if to_insert:
                await self.rows.insert(
                    kind.assignment_table,
                    [
                        {
                            "trip_id": trip_id,
                            kind.id_column: equipment_id,
                            kind.snapshot_column: names.data[equipment_id],
                        }
                        for equipment_id in to_insert
                    ],
                )
            logger.info(
                "Reconciled trip %s %s: %d removed, %d added",
                trip_id,
                kind.name,
                len(to_delete),
                len(to_insert),
            )
            result = await self.rows.fetch(self._assignments(trip_id, kind))
        except StoreError as exc:
            return self.store_failure(exc)
        return ServiceResult.ok([self.to_response(kind, row) for row in result])

    async def add(
        self,
        trip_id: UUID,
        kind_name: str,
        equipment_id: UUID,
    ) -> ServiceResult[AssignmentResponse]:
        kind = get_kind(kind_name)
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)
        try:
            existing = await self.rows.fetch_one(
                QuerySpec(kind.assignment_table).eq("trip_id", trip_id).eq(kind.id_column, equipment_id)
            )
            if existing is not None:
                return ServiceResult.fail(
                    ConflictError(
                        "This equipment is already assigned to the trip",
                        {"kind": kind.name, "equipment_id": str(equipment_id)},
                    )
                )
            names = await resolve_equipment_names(self.rows, kind, [equipment_id], trip.data["user_id"])
            if not names.is_ok:
                return ServiceResult.fail(names.error)
            inserted = await self.rows.insert(
                kind.assignment_table,
                [
                    {
                        "trip_id": trip_id,
                        kind.id_column: equipment_id,
                        kind.snapshot_column: names.data[equipment_id],
                    }
                ],
            )
        except StoreError as exc:
            return self.store_failure(exc)
        return ServiceResult.ok(self.to_response(kind, inserted[0]))

    async def remove(self, trip_id: UUID, kind_name: str, assignment_id: UUID) -> ServiceResult[None]:
        kind = get_kind(kind_name)
        trip = await self.load_trip(trip_id)
        if not trip.is_ok:
            return ServiceResult.fail(trip.error)
        try:
            deleted = await self.rows.delete(
                QuerySpec(kind.assignment_table).eq("id", assignment_id).eq("trip_id", trip_id)
            )
        except StoreError as exc:
            return self.store_failure(exc)
        if not deleted:
            return ServiceResult.fail(
                NotFoundError("assignment", assignment_id, message=f"{kind.label} assignment not found")
            )
        return ServiceResult.ok(None)

    # ── Cross-trip operations ─────────────────────────────────────────────

    async def _latest_trip(self, owner_id: UUID, exclude_trip_id: Optional[UUID] = None) -> Optional[Row]:
        spec = QuerySpec("trips").eq("user_id", owner_id).is_null("deleted_at")
        if exclude_trip_id is not None:
            spec = spec.neq("id", exclude_trip_id)
        return await self.rows.fetch_one(
            spec.order("started_at", ascending=False).order("id", ascending=False)
        )

    async def copy_from_last_trip(self, owner_id: UUID, target_trip_id: UUID) -> ServiceResult[CopiedEquipment]:
        """
        Copy every assignment of the owner's most recent other trip onto
        `target_trip_id`, keeping the source rows' name snapshots.
        """
        copied: Dict[str, List[UUID]] = {name: [] for name in EQUIPMENT_KINDS}
        try:
            source = await self._latest_trip(owner_id, exclude_trip_id=target_trip_id)
            if source is None:
                return ServiceResult.ok(CopiedEquipment())
            for kind in EQUIPMENT_KINDS.values():
                rows = await self.rows.fetch(self._assignments(source["id"], kind))
                if not rows:
                    continue
                inserted = await self.rows.insert(
                    kind.assignment_table,
                    [
                        {
                            "trip_id": target_trip_id,
                            kind.id_column: row[kind.id_column],
                            kind.snapshot_column: row[kind.snapshot_column],
                        }
                        for row in rows
                    ],
                )
                copied[kind.name] = [row[kind.id_column] for row in inserted]
        except StoreError as exc:
            return self.store_failure(exc)

        logger.info("Copied equipment from trip %s to trip %s", source["id"], target_trip_id)
        return ServiceResult.ok(
            CopiedEquipment(
                rod_ids=copied["rods"],
                lure_ids=copied["lures"],
                groundbait_ids=copied["groundbaits"],
            )
        )

    async def last_used(self, owner_id: UUID) -> ServiceResult[LastUsedEquipment]:
        """Equipment of the owner's most recent trip, for pre-filling a new one."""
        try:
            source = await self._latest_trip(owner_id)
            if source is None:
                return ServiceResult.fail(NotFoundError("trip", message="No previous trips found"))
            sets = {}
            for kind in EQUIPMENT_KINDS.values():
                rows = await self.rows.fetch(self._assignments(source["id"], kind))
                sets[kind.name] = [self.to_snapshot(kind, row) for row in rows]
        except StoreError as exc:
            return self.store_failure(exc)
        return ServiceResult.ok(LastUsedEquipment(source_trip_id=source["id"], **sets))
