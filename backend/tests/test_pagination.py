"""
FishLog Backend — Cursor Codec & Keyset Pagination Tests
==========================================================

What we test:
    ✅ Cursor round-trip returns typed values (datetime, int, float, str, UUID)
    ✅ A cursor only resumes a listing sorted by the column it was built for
    ✅ Tampered, truncated and made-up cursors decode to validation_error
    ✅ Following next_cursor visits every row exactly once, in order
    ✅ Rows sharing a sort value are neither skipped nor duplicated
    ✅ 3 rows with limit=2 → 2 rows + cursor, then 1 row + null
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from fishlog.exceptions import ValidationError
from fishlog.services.pagination import (
    CursorData,
    PageRequest,
    _seal,
    decode_cursor,
    encode_cursor,
    keyset_spec,
    paginate,
)
from fishlog.store.base import StoreError
from fishlog.store.query import AnyOf, QuerySpec

BASE_TIME = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)


class TestCursorCodec:
    """Tests for encode_cursor / decode_cursor."""

    def test_round_trip_timestamp(self):
        """decode(encode(sort, ts, id)) gives back the same datetime and UUID."""
        row_id = uuid4()
        decoded = decode_cursor(encode_cursor("started_at", BASE_TIME, row_id))

        assert decoded.is_ok
        assert decoded.data == CursorData(sort="started_at", sort_value=BASE_TIME, id=row_id)
        assert isinstance(decoded.data.sort_value, datetime)

    @pytest.mark.parametrize("value", ["Pike, 5kg / \"record\"", 42, 2.5, "2025-01-15"])
    def test_round_trip_plain_values(self, value):
        """Strings (even date-like ones), integers and floats keep their type."""
        row_id = uuid4()
        decoded = decode_cursor(encode_cursor("name", value, row_id))

        assert decoded.data.sort_value == value
        assert type(decoded.data.sort_value) is type(value)
        assert decoded.data.id == row_id

    def test_cursor_is_url_safe(self):
        """Cursors contain only URL-safe characters."""
        cursor = encode_cursor("name", "ąę?&=/+", uuid4())
        allowed = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.")
        assert set(cursor) <= allowed

    def test_tampered_payload_rejected(self):
        """Changing a single payload character invalidates the signature."""
        cursor = encode_cursor("started_at", BASE_TIME, uuid4())
        payload, signature = cursor.split(".")
        flipped = ("A" if payload[0] != "A" else "B") + payload[1:]

        decoded = decode_cursor(f"{flipped}.{signature}")
        assert not decoded.is_ok
        assert isinstance(decoded.error, ValidationError)
        assert decoded.error.field == "cursor"

    def test_cursor_signed_with_other_secret_rejected(self):
        """A cursor minted with a different secret is not accepted."""
        cursor = encode_cursor("started_at", BASE_TIME, uuid4(), secret="someone-else")
        assert not decode_cursor(cursor).is_ok

    @pytest.mark.parametrize(
        "cursor",
        ["", "garbage", "a.b.c", "....", "eyJzb3J0VmFsdWUiOiJ4In0", "ünïcode.sig", ".", "abc.sïg"],
    )
    def test_malformed_cursor_rejected(self, cursor):
        """Arbitrary strings produce validation_error, never an exception."""
        decoded = decode_cursor(cursor)
        assert not decoded.is_ok
        assert decoded.error.code == "validation_error"
        assert decoded.error.http_status == 400

    def test_truncated_cursor_rejected(self):
        """Dropping the tail of a real cursor is detected."""
        cursor = encode_cursor("started_at", BASE_TIME, uuid4())
        assert not decode_cursor(cursor[:-3]).is_ok

    def test_cursor_bound_to_sort_column(self):
        """A cursor minted for created_at does not resume a started_at listing."""
        cursor = encode_cursor("created_at", BASE_TIME, uuid4())

        assert decode_cursor(cursor, sort="created_at").is_ok
        mismatch = decode_cursor(cursor, sort="started_at")
        assert mismatch.error.field == "cursor"
        assert "created_at" in mismatch.error.message

    @pytest.mark.parametrize(
        "body",
        [
            {"sort": "started_at", "sortValue": "not-a-date", "type": "datetime", "id": "x"},
            {"sort": "started_at", "sortValue": "2025-01-15T08:00:00+00:00", "type": "datetime", "id": "not-a-uuid"},
            {"sort": "started_at", "sortValue": "1", "type": "decimal", "id": "7d3c2f1e-0000-4000-8000-000000000001"},
            {"sortValue": "1", "type": "int", "id": "7d3c2f1e-0000-4000-8000-000000000001"},
        ],
    )
    def test_signed_but_unparseable_payload_rejected(self, body):
        """Correctly signed payloads with bad values or tags still fail cleanly."""
        decoded = decode_cursor(_seal(body))
        assert decoded.error.code == "validation_error"


class TestKeysetSpec:
    """Tests for the keyset condition added to a list query."""

    def test_first_page_has_no_position_condition(self):
        """Without a cursor only order and limit + 1 are applied."""
        spec = keyset_spec(QuerySpec("catches"), PageRequest(sort="caught_at", order="desc", limit=20))

        assert spec.where == ()
        assert [(k.column, k.ascending) for k in spec.order_by] == [("caught_at", False), ("id", False)]
        assert spec.limit == 21

    def test_descending_tie_break(self):
        """Descending: sort < v OR (sort = v AND id < cid)."""
        row_id = uuid4()
        spec = keyset_spec(
            QuerySpec("catches"),
            PageRequest(sort="caught_at", order="desc", limit=5),
            position=(BASE_TIME, row_id),
        )
        disjunction = spec.where[-1]

        assert isinstance(disjunction, AnyOf)
        first, second = disjunction.branches
        assert [(c.column, c.op) for c in first] == [("caught_at", "lt")]
        assert [(c.column, c.op) for c in second] == [("caught_at", "eq"), ("id", "lt")]

    def test_ascending_uses_greater_than(self):
        """Ascending pages resume with > on both sort value and id."""
        spec = keyset_spec(
            QuerySpec("trips"),
            PageRequest(sort="started_at", order="asc", limit=5),
            position=(BASE_TIME, uuid4()),
        )
        ops = [c.op for branch in spec.where[-1].branches for c in branch]
        assert ops == ["gt", "eq", "gt"]


class TestPaginate:
    """Tests for paginate() against the in-memory row store."""

    async def _collect(self, store, request: PageRequest):
        seen, cursor, pages = [], None, 0
        while True:
            page = await paginate(
                store,
                QuerySpec("fish_species"),
                PageRequest(request.sort, request.order, request.limit, cursor),
            )
            assert page.is_ok
            rows, cursor = page.data
            seen.extend(rows)
            pages += 1
            if cursor is None:
                return seen, pages

    @pytest.mark.asyncio
    async def test_three_rows_limit_two(self, row_store, owner_id):
        """First page: 2 rows + cursor; second page: 1 row + null cursor."""
        for hours in range(3):
            row_store.seed("trips", user_id=owner_id, started_at=BASE_TIME + timedelta(hours=hours))
        request = PageRequest(sort="started_at", order="desc", limit=2)

        first = await paginate(row_store, QuerySpec("trips"), request)
        rows, cursor = first.data
        assert len(rows) == 2
        assert cursor is not None

        second = await paginate(row_store, QuerySpec("trips"), PageRequest("started_at", "desc", 2, cursor))
        rows2, cursor2 = second.data
        assert len(rows2) == 1
        assert cursor2 is None
        assert rows2[0]["started_at"] == BASE_TIME

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", ["asc", "desc"])
    @pytest.mark.parametrize("limit", [1, 2, 3, 7, 50])
    async def test_pages_cover_all_rows_once(self, row_store, order, limit):
        """Concatenated pages equal the full ordered set, even with tied sort values."""
        for index in range(11):
            row_store.seed("fish_species", name=f"species-{index}")
        # Only four distinct names left: ties are resolved by id
        for index, row in enumerate(row_store.tables["fish_species"]):
            row["name"] = f"species-{index % 4}"

        seen, _ = await self._collect(row_store, PageRequest(sort="name", order=order, limit=limit))

        expected = sorted(
            row_store.rows("fish_species"),
            key=lambda row: (row["name"], row["id"]),
            reverse=order == "desc",
        )
        assert [row["id"] for row in seen] == [row["id"] for row in expected]

    @pytest.mark.asyncio
    async def test_empty_table_single_page(self, row_store):
        """An empty result is one page with a null cursor."""
        page = await paginate(row_store, QuerySpec("trips"), PageRequest("started_at"))
        assert page.data == ([], None)

    @pytest.mark.asyncio
    async def test_invalid_cursor_is_validation_error(self, row_store):
        """A bad cursor fails before the store is queried."""
        page = await paginate(row_store, QuerySpec("trips"), PageRequest("started_at", cursor="nope"))

        assert page.error.code == "validation_error"
        assert row_store.calls == []

    @pytest.mark.asyncio
    async def test_cursor_from_other_sort_rejected(self, row_store, owner_id):
        """A next_cursor from a created_at listing is refused by a started_at listing."""
        for hours in range(3):
            row_store.seed("trips", user_id=owner_id, started_at=BASE_TIME + timedelta(hours=hours))
        first = await paginate(row_store, QuerySpec("trips"), PageRequest("created_at", "desc", 1))
        _, cursor = first.data
        calls_before = len(row_store.calls)

        page = await paginate(row_store, QuerySpec("trips"), PageRequest("started_at", "desc", 1, cursor))

        assert page.error.field == "cursor"
        assert len(row_store.calls) == calls_before

    @pytest.mark.asyncio
    async def test_store_failure_is_mapped(self, row_store):
        """A store failure during the page fetch becomes a domain error."""
        row_store.fail("fetch", "trips", StoreError(None, "connection reset by peer"))
        page = await paginate(row_store, QuerySpec("trips"), PageRequest("started_at"))
        assert page.error.code == "internal_error"
