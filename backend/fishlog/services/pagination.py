"""
FishLog Backend — Cursor Codec & Keyset Pagination
====================================================

What:  Encodes/decodes opaque pagination cursors and runs keyset-paginated
       list queries for every list operation.
Why:   Offset pagination skips or repeats rows when others are inserted or
       deleted between page loads. Keyset pagination resumes strictly after
       the last row seen, using (sort value, id) so rows sharing a sort value
       are neither skipped nor duplicated.

Cursor Format:
    <payload>.<signature>
    payload   = urlsafe base64 (no padding) of
                {"sort": column, "sortValue": str, "type": tag, "id": uuid}
    signature = urlsafe base64 of the first 16 bytes of HMAC-SHA256(payload)

    The whole token is URL-safe. A cursor that was edited, truncated or made
    up by a client fails signature or shape checks and decodes to a
    ValidationError, never an exception. `type` (datetime, int, float, str)
    lets decode hand back the value as it was encoded; `sort` ties the cursor
    to the column it was minted for.

Keyset Condition:
    ascending:  sort > v OR (sort = v AND id > cid)
    descending: sort < v OR (sort = v AND id < cid)
    ORDER BY sort, id in the same direction; fetch limit + 1 rows to learn
    whether a next page exists without a COUNT query.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from fishlog.config import settings
from fishlog.exceptions import ValidationError
from fishlog.result import ServiceResult
from fishlog.services.error_mapper import map_store_error
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import Condition, QuerySpec

logger = logging.getLogger(__name__)

SIGNATURE_BYTES = 16

# Type tags stored next to the sort value so decode returns the original type
SORT_VALUE_TYPES: Dict[str, Callable[[str], Any]] = {
    "datetime": lambda text: datetime.fromisoformat(text.replace("Z", "+00:00")),
    "int": int,
    "float": float,
    "str": str,
}


@dataclass(frozen=True)
class CursorData:
    sort: str
    sort_value: Any
    id: UUID


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _signature(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), payload.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest[:SIGNATURE_BYTES])


def _seal(body: Dict[str, Any], secret: Optional[str] = None) -> str:
    payload = _b64encode(json.dumps(body, separators=(",", ":")).encode("utf-8"))
    return f"{payload}.{_signature(payload, secret or settings.cursor_secret)}"


def sort_value_type(value: Any) -> str:
    if isinstance(value, datetime):
        return "datetime"
    if isinstance(value, bool):
        return "str"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    return "str"


def serialize_sort_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def encode_cursor(sort: str, sort_value: Any, row_id: Any, secret: Optional[str] = None) -> str:
    """Build an opaque cursor for (sort_value, row_id) on the `sort` column."""
    return _seal(
        {
            "sort": sort,
            "sortValue": serialize_sort_value(sort_value),
            "type": sort_value_type(sort_value),
            "id": str(row_id),
        },
        secret,
    )


def decode_cursor(
    cursor: str,
    sort: Optional[str] = None,
    secret: Optional[str] = None,
) -> ServiceResult[CursorData]:
    """
    Decode a cursor produced by encode_cursor back into typed values.

    When `sort` is given, a cursor minted for another sort column is
    rejected: its position means nothing in a differently ordered listing.
    Any input encode_cursor could not have produced → ValidationError.
    """
    invalid = ServiceResult.fail(ValidationError("Invalid cursor format", field="cursor"))

    if not isinstance(cursor, str) or cursor.count(".") != 1:
        return invalid
    payload, signature = cursor.split(".")
    if not (payload.isascii() and signature.isascii()):
        return invalid
    expected = _signature(payload, secret or settings.cursor_secret)
    if not hmac.compare_digest(expected, signature):
        logger.debug("Rejected cursor with bad signature")
        return invalid

    try:
        data = json.loads(_b64decode(payload).decode("utf-8"))
    except (ValueError, binascii.Error, UnicodeDecodeError):
        return invalid
    if not isinstance(data, dict):
        return invalid

    cursor_sort, raw_value = data.get("sort"), data.get("sortValue")
    parse = SORT_VALUE_TYPES.get(data.get("type"))
    if not isinstance(cursor_sort, str) or not isinstance(raw_value, str) or parse is None:
        return invalid
    try:
        sort_value = parse(raw_value)
        row_id = UUID(str(data.get("id")))
    except ValueError:
        return invalid

    if sort is not None and cursor_sort != sort:
        return ServiceResult.fail(
            ValidationError(
                f"Cursor belongs to a listing sorted by '{cursor_sort}', not '{sort}'",
                field="cursor",
            )
        )
    return ServiceResult.ok(CursorData(sort=cursor_sort, sort_value=sort_value, id=row_id))


# ══════════════════════════════════════════════════════════════════════════
# Keyset pagination
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PageRequest:
    """Pagination inputs shared by every list operation."""

    sort: str
    order: str = "desc"
    limit: int = 20
    cursor: Optional[str] = None

    @property
    def ascending(self) -> bool:
        return self.order == "asc"


def keyset_spec(
    spec: QuerySpec,
    request: PageRequest,
    position: Optional[Tuple[Any, UUID]] = None,
) -> QuerySpec:
    """Apply ordering, optional resume position and limit + 1 to `spec`."""
    op = "gt" if request.ascending else "lt"
    if position is not None:
        sort_value, row_id = position
        spec = spec.any_of(
            (Condition(request.sort, op, sort_value),),
            (Condition(request.sort, "eq", sort_value), Condition("id", op, row_id)),
        )
    return (
        spec.order(request.sort, ascending=request.ascending)
        .order("id", ascending=request.ascending)
        .take(request.limit + 1)
    )


async def paginate(
    rows: RowStore,
    spec: QuerySpec,
    request: PageRequest,
) -> ServiceResult[Tuple[List[Row], Optional[str]]]:
    """
    Run one keyset page of `spec`.

    Returns:
        (rows for this page, next_cursor or None when this is the last page)
    """
    position = None
    if request.cursor:
        decoded = decode_cursor(request.cursor, sort=request.sort)
        if not decoded.is_ok:
            return ServiceResult.fail(decoded.error)
        position = (decoded.data.sort_value, decoded.data.id)

    try:
        fetched = await rows.fetch(keyset_spec(spec, request, position))
    except StoreError as exc:
        return ServiceResult.fail(map_store_error(exc))

    next_cursor = None
    if len(fetched) > request.limit:
        fetched = fetched[: request.limit]
        last = fetched[-1]
        next_cursor = encode_cursor(request.sort, last[request.sort], last["id"])
    return ServiceResult.ok((fetched, next_cursor))
