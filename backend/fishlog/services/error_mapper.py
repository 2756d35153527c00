"""
FishLog Backend — Store Error Mapper
======================================

What:  The single place where raw relational-store failures are classified
       into the domain error taxonomy.
Why:   SQLSTATE codes and constraint-name substrings are provider details.
       Keeping every such match in one ordered rule table means no service
       re-implements "is this a duplicate?" checks.
How:   `STORE_ERROR_RULES` is evaluated top to bottom; the first rule whose
       code and message needles both match builds the domain error. Anything
       unmatched becomes InternalError and is logged with full detail.

Rule Table (first match wins):
    23505 + trip_<kind>s_unique   → conflict (equipment already assigned)
    23505 + <kind>s_user_name_unique → conflict (name taken by a live item)
    23505                         → conflict
    P0001 + other owner wording   → equipment_owner_mismatch
    P0001 + soft-deleted wording  → equipment_soft_deleted
    P0001                         → conflict
    23514 + weight/length/dates   → validation_error (field specific)
    23514                         → validation_error
    23503 + species/lure/bait     → validation_error
    23503 + trip                  → not_found
    23503                         → not_found
    PGRST116 / no rows            → not_found
    raw text fallbacks            → same classes, for errors without a code
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from fishlog.exceptions import (
    ConflictError,
    EquipmentOwnerMismatchError,
    EquipmentSoftDeletedError,
    FishLogError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from fishlog.store.base import StoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"
FOREIGN_KEY_VIOLATION = "23503"
RAISE_EXCEPTION = "P0001"
NO_ROWS = "PGRST116"


@dataclass(frozen=True)
class ErrorRule:
    """
    codes:   SQLSTATE/provider codes this rule applies to (empty = any code)
    needles: lowercase substrings, any of which must appear in the message
             or details (empty = no text condition)
    build:   factory producing the domain error
    """

    codes: Tuple[str, ...]
    needles: Tuple[str, ...]
    build: Callable[[StoreError], FishLogError]

    def matches(self, error: StoreError) -> bool:
        if self.codes and error.code not in self.codes:
            return False
        if not self.needles:
            return True
        text = f"{error.message} {error.details or ''}".lower()
        return any(needle in text for needle in self.needles)


def _context(error: StoreError) -> dict:
    return {"store_code": error.code, "store_message": error.message}


def _duplicate_name(label: str) -> Callable[[StoreError], FishLogError]:
    return lambda e: ConflictError(f"{label} with this name already exists", {**_context(e), "field": "name"})


STORE_ERROR_RULES: Tuple[ErrorRule, ...] = (
    # ── Unique violations ─────────────────────────────────────────────────
    ErrorRule(
        (UNIQUE_VIOLATION,),
        ("trip_rods_unique", "trip_lures_unique", "trip_groundbaits_unique"),
        lambda e: ConflictError("This equipment is already assigned to the trip", _context(e)),
    ),
    *(
        ErrorRule((UNIQUE_VIOLATION,), (f"{table}_user_name_unique",), _duplicate_name(label))
        for table, label in (("rods", "Rod"), ("lures", "Lure"), ("groundbaits", "Groundbait"))
    ),
    ErrorRule((UNIQUE_VIOLATION,), (), lambda e: ConflictError("Resource already exists", _context(e))),
    # ── Raised by equipment assignment triggers ───────────────────────────
    ErrorRule(
        (RAISE_EXCEPTION,),
        ("another user", "different user", "different owner", "innego użytkownika"),
        lambda e: EquipmentOwnerMismatchError(context=_context(e)),
    ),
    ErrorRule(
        (RAISE_EXCEPTION,),
        ("soft-deleted", "soft deleted", "usunięty"),
        lambda e: EquipmentSoftDeletedError(context=_context(e)),
    ),
    ErrorRule((RAISE_EXCEPTION,), (), lambda e: ConflictError(e.message, _context(e))),
    # ── Check constraints ─────────────────────────────────────────────────
    ErrorRule(
        (CHECK_VIOLATION,),
        ("weight",),
        lambda e: ValidationError("weight_g must be greater than 0", field="weight_g"),
    ),
    ErrorRule(
        (CHECK_VIOLATION,),
        ("length",),
        lambda e: ValidationError("length_mm must be greater than 0", field="length_mm"),
    ),
    ErrorRule(
        (CHECK_VIOLATION,),
        ("trips_ended_after_started",),
        lambda e: ValidationError("ended_at must be equal to or later than started_at", field="ended_at"),
    ),
    ErrorRule(
        (CHECK_VIOLATION,),
        ("trips_closed_requires_end",),
        lambda e: ValidationError("A closed trip requires ended_at", field="ended_at"),
    ),
    ErrorRule(
        (CHECK_VIOLATION,),
        ("period",),
        lambda e: ValidationError("period_end must be equal to or later than period_start", field="period_end"),
    ),
    ErrorRule((CHECK_VIOLATION,), (), lambda e: ValidationError("Value violates a data constraint")),
    # ── Foreign keys ──────────────────────────────────────────────────────
    ErrorRule(
        (FOREIGN_KEY_VIOLATION,),
        ("species",),
        lambda e: ValidationError("Fish species not found", field="species_id"),
    ),
    ErrorRule(
        (FOREIGN_KEY_VIOLATION,),
        ("lure",),
        lambda e: ValidationError("Lure not found", field="lure_id"),
    ),
    ErrorRule(
        (FOREIGN_KEY_VIOLATION,),
        ("groundbait",),
        lambda e: ValidationError("Groundbait not found", field="groundbait_id"),
    ),
    ErrorRule(
        (FOREIGN_KEY_VIOLATION,),
        ("trip_id", "trips"),
        lambda e: NotFoundError("trip", message="Trip not found"),
    ),
    ErrorRule(
        (FOREIGN_KEY_VIOLATION,),
        (),
        lambda e: NotFoundError(message="Referenced resource not found"),
    ),
    # ── No rows ───────────────────────────────────────────────────────────
    ErrorRule((NO_ROWS,), (), lambda e: NotFoundError()),
    # ── Raw text, no code available ───────────────────────────────────────
    ErrorRule((), ("violates unique constraint", "duplicate key"), lambda e: ConflictError(context=_context(e))),
    ErrorRule((), ("violates check constraint",), lambda e: ValidationError("Value violates a data constraint")),
    ErrorRule(
        (),
        ("violates foreign key constraint",),
        lambda e: NotFoundError(message="Referenced resource not found"),
    ),
    ErrorRule((), ("no rows", "0 rows"), lambda e: NotFoundError()),
)


def map_store_error(
    error: StoreError,
    rules: Optional[Tuple[ErrorRule, ...]] = None,
) -> FishLogError:
    """
    Classify a StoreError into the domain taxonomy.

    Args:
        error: The raw store failure.
        rules: Override rule table (tests); defaults to STORE_ERROR_RULES.
    """
    for rule in rules if rules is not None else STORE_ERROR_RULES:
        if rule.matches(error):
            return rule.build(error)

    logger.error(
        "Unclassified store error [%s]: %s | details: %s",
        error.code,
        error.message,
        error.details,
    )
    return InternalError(message=error.message, context=_context(error))
