"""
FishLog Backend — Equipment Reconciliation Unit Tests
=======================================================

What we test:
    ✅ replace_assignments writes only the difference (delete first, then insert)
    ✅ Replaying the same set performs zero writes
    ✅ Missing / foreign / soft-deleted equipment rejected before any write
    ✅ add: duplicate → conflict; remove: unknown assignment → not_found
    ✅ copy_from_last_trip keeps the source snapshots verbatim
    ✅ last_used reports the most recent trip's equipment
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from fishlog.services.equipment_service import EquipmentService, get_kind
from conftest import TRIP_START


class TestReplaceAssignments:
    """Tests for EquipmentService.replace_assignments()."""

    @pytest.fixture(autouse=True)
    def _service(self, row_store, owner_id, trip):
        self.store = row_store
        self.owner_id = owner_id
        self.trip = trip
        self.service = EquipmentService(row_store, owner_id=owner_id)

    def _lures(self, *names):
        return [self.store.seed("lures", user_id=self.owner_id, name=name) for name in names]

    def _writes(self):
        return [call for call in self.store.calls if call[0] in ("insert", "delete")]

    @pytest.mark.asyncio
    async def test_initial_set_inserts_with_snapshots(self):
        """An empty trip gets one bulk insert carrying current names."""
        a, b = self._lures("Rapala", "Salmo")

        result = await self.service.replace_assignments(self.trip["id"], "lures", [a["id"], b["id"]])

        assert sorted(item.name_snapshot for item in result.data) == ["Rapala", "Salmo"]
        assert self._writes() == [("insert", "trip_lures")]

    @pytest.mark.asyncio
    async def test_second_identical_call_writes_nothing(self):
        """Reconciling to the current set is a no-op."""
        a, b = self._lures("Rapala", "Salmo")
        await self.service.replace_assignments(self.trip["id"], "lures", [a["id"], b["id"]])
        self.store.calls.clear()

        result = await self.service.replace_assignments(self.trip["id"], "lures", [b["id"], a["id"]])

        assert len(result.data) == 2
        assert self.store.count_calls("insert", "trip_lures") == 0
        assert self.store.count_calls("delete", "trip_lures") == 0

    @pytest.mark.asyncio
    async def test_diff_is_minimal(self):
        """{A, B} → {B, C}: delete A, insert C, keep B's row untouched."""
        a, b, c = self._lures("A", "B", "C")
        first = await self.service.replace_assignments(self.trip["id"], "lures", [a["id"], b["id"]])
        kept_assignment = next(item.id for item in first.data if item.equipment_id == b["id"])
        self.store.calls.clear()

        result = await self.service.replace_assignments(self.trip["id"], "lures", [b["id"], c["id"]])

        assert {item.equipment_id for item in result.data} == {b["id"], c["id"]}
        assert kept_assignment in {item.id for item in result.data}
        assert self._writes() == [("delete", "trip_lures"), ("insert", "trip_lures")]

    @pytest.mark.asyncio
    async def test_empty_set_clears(self):
        """An empty desired set deletes every assignment."""
        (a,) = self._lures("A")
        await self.service.replace_assignments(self.trip["id"], "lures", [a["id"]])

        result = await self.service.replace_assignments(self.trip["id"], "lures", [])

        assert result.data == []
        assert self.store.rows("trip_lures") == []

    @pytest.mark.asyncio
    async def test_duplicate_ids_collapse(self):
        """Repeated ids in the request produce a single assignment."""
        (a,) = self._lures("A")
        result = await self.service.replace_assignments(self.trip["id"], "lures", [a["id"], a["id"]])
        assert len(result.data) == 1

    @pytest.mark.asyncio
    async def test_missing_equipment_rejected(self):
        """Unknown ids fail with validation_error and nothing is written."""
        result = await self.service.replace_assignments(self.trip["id"], "rods", [uuid4()])

        assert result.error.code == "validation_error"
        assert result.error.field == "rod_id"
        assert self._writes() == []

    @pytest.mark.asyncio
    async def test_foreign_equipment_rejected(self, other_owner_id):
        """Equipment owned by another user is equipment_owner_mismatch."""
        foreign = self.store.seed("groundbaits", user_id=other_owner_id, name="Theirs")
        result = await self.service.replace_assignments(self.trip["id"], "groundbaits", [foreign["id"]])

        assert result.error.code == "equipment_owner_mismatch"
        assert result.error.http_status == 409

    @pytest.mark.asyncio
    async def test_soft_deleted_equipment_rejected_without_partial_write(self):
        """One deleted rod among valid ones rejects the whole set."""
        valid = self.store.seed("rods", user_id=self.owner_id, name="Valid")
        gone = self.store.seed("rods", user_id=self.owner_id, name="Gone", deleted_at=datetime.now(timezone.utc))

        result = await self.service.replace_assignments(self.trip["id"], "rods", [valid["id"], gone["id"]])

        assert result.error.code == "equipment_soft_deleted"
        assert self.store.rows("trip_rods") == []

    @pytest.mark.asyncio
    async def test_hidden_trip_not_found(self, other_owner_id):
        """Reconciling another user's trip is not_found."""
        stranger = EquipmentService(self.store, owner_id=other_owner_id)
        result = await stranger.replace_assignments(self.trip["id"], "lures", [])
        assert result.error.code == "not_found"

    def test_unknown_kind(self):
        """Only rods, lures and groundbaits exist."""
        with pytest.raises(ValueError):
            get_kind("reels")


class TestAddRemove:
    """Tests for add(), remove() and list()."""

    @pytest.fixture(autouse=True)
    def _service(self, row_store, owner_id, trip, rod):
        self.store = row_store
        self.trip = trip
        self.rod = rod
        self.service = EquipmentService(row_store, owner_id=owner_id)

    @pytest.mark.asyncio
    async def test_add_and_list(self):
        """Added equipment appears in the list with its snapshot."""
        added = await self.service.add(self.trip["id"], "rods", self.rod["id"])
        listed = await self.service.list(self.trip["id"], "rods")

        assert added.data.name_snapshot == "Shimano Catana 2.7m"
        assert [item.id for item in listed.data] == [added.data.id]

    @pytest.mark.asyncio
    async def test_add_twice_is_conflict(self):
        """Adding the same rod again is a conflict."""
        await self.service.add(self.trip["id"], "rods", self.rod["id"])
        result = await self.service.add(self.trip["id"], "rods", self.rod["id"])

        assert result.error.code == "conflict"
        assert result.error.message == "This equipment is already assigned to the trip"

    @pytest.mark.asyncio
    async def test_remove(self):
        """remove deletes the assignment; removing it again is not_found."""
        added = await self.service.add(self.trip["id"], "rods", self.rod["id"])

        assert (await self.service.remove(self.trip["id"], "rods", added.data.id)).is_ok
        again = await self.service.remove(self.trip["id"], "rods", added.data.id)
        assert again.error.message == "Rod assignment not found"

    @pytest.mark.asyncio
    async def test_remove_from_other_trip_not_found(self, owner_id):
        """An assignment id only matches within its own trip."""
        added = await self.service.add(self.trip["id"], "rods", self.rod["id"])
        other_trip = self.store.seed("trips", user_id=owner_id, started_at=TRIP_START)

        result = await self.service.remove(other_trip["id"], "rods", added.data.id)

        assert result.error.code == "not_found"
        assert len(self.store.rows("trip_rods")) == 1


class TestCrossTrip:
    """Tests for copy_from_last_trip() and last_used()."""

    @pytest.fixture(autouse=True)
    def _service(self, row_store, owner_id, rod, lure):
        self.store = row_store
        self.owner_id = owner_id
        self.source = row_store.seed("trips", user_id=owner_id, started_at=TRIP_START)
        row_store.seed("trip_rods", trip_id=self.source["id"], rod_id=rod["id"], rod_name_snapshot="Catana (2024)")
        row_store.seed("trip_lures", trip_id=self.source["id"], lure_id=lure["id"], lure_name_snapshot="Rapala")
        self.rod = rod
        self.lure = lure
        self.service = EquipmentService(row_store, owner_id=owner_id)

    @pytest.mark.asyncio
    async def test_copy_keeps_snapshots(self):
        """Snapshots are copied from the source rows, not re-read from equipment."""
        target = self.store.seed("trips", user_id=self.owner_id, started_at=TRIP_START + timedelta(days=1))

        result = await self.service.copy_from_last_trip(self.owner_id, target["id"])

        assert result.data.rod_ids == [self.rod["id"]]
        assert result.data.lure_ids == [self.lure["id"]]
        assert result.data.groundbait_ids == []
        copied = [row for row in self.store.rows("trip_rods") if row["trip_id"] == target["id"]]
        assert copied[0]["rod_name_snapshot"] == "Catana (2024)"

    @pytest.mark.asyncio
    async def test_copy_skips_deleted_trips(self):
        """A soft-deleted newer trip is not used as the source."""
        deleted = self.store.seed(
            "trips",
            user_id=self.owner_id,
            started_at=TRIP_START + timedelta(days=2),
            deleted_at=datetime.now(timezone.utc),
        )
        self.store.seed("trip_lures", trip_id=deleted["id"], lure_id=self.lure["id"], lure_name_snapshot="Deleted")
        target = self.store.seed("trips", user_id=self.owner_id, started_at=TRIP_START + timedelta(days=3))

        result = await self.service.copy_from_last_trip(self.owner_id, target["id"])
        assert result.data.rod_ids == [self.rod["id"]]

    @pytest.mark.asyncio
    async def test_copy_with_no_other_trip(self, other_owner_id):
        """An owner whose only trip is the target gets nothing copied."""
        target = self.store.seed("trips", user_id=other_owner_id, started_at=TRIP_START)
        result = await self.service.copy_from_last_trip(other_owner_id, target["id"])

        assert result.is_ok
        assert result.data.rod_ids == []

    @pytest.mark.asyncio
    async def test_last_used(self):
        """last_used lists every kind of the most recent trip."""
        result = await self.service.last_used(self.owner_id)

        assert result.data.source_trip_id == self.source["id"]
        assert [item.name_snapshot for item in result.data.rods] == ["Catana (2024)"]
        assert [item.id for item in result.data.lures] == [self.lure["id"]]
        assert result.data.groundbaits == []

    @pytest.mark.asyncio
    async def test_last_used_without_trips(self, other_owner_id):
        """An owner with no trips gets not_found."""
        result = await self.service.last_used(other_owner_id)
        assert result.error.message == "No previous trips found"
