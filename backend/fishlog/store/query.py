"""
FishLog Backend — Query Specification
=======================================

What:  A small immutable description of a row query: table, projected
       columns, conjunctive predicates, one optional disjunction group per
       call to `any_of`, sort keys and a limit.
Why:   Services describe WHAT they want; a single executor (SqlAlchemyRowStore,
       or the in-memory store used in tests) decides HOW. Business rules can
       then be unit-tested by inspecting or evaluating the spec directly.
How:   Every builder method returns a new QuerySpec, so partially built specs
       can be shared and extended without aliasing bugs:

           base = QuerySpec("catches").eq("trip_id", trip_id)
           page = base.order("caught_at", ascending=False).take(21)

Supported operators (the fixed set the services need; not a query language):
    eq, neq, gt, gte, lt, lte, in, is_null, not_null,
    icontains (case-insensitive substring; LIKE wildcards in the value are literal)
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Tuple, Union

OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "is_null", "not_null", "icontains")


@dataclass(frozen=True)
class Condition:
    """A single `column <op> value` predicate."""

    column: str
    op: str
    value: Any = None

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator '{self.op}'")

    def test(self, row: Dict[str, Any]) -> bool:
        """Evaluate against a row dict. NULL never compares true (SQL semantics)."""
        current = row.get(self.column)
        if self.op == "is_null":
            return current is None
        if self.op == "not_null":
            return current is not None
        if current is None:
            return False
        if self.op == "eq":
            return current == self.value
        if self.op == "neq":
            return current != self.value
        if self.op == "in":
            return current in self.value
        if self.op == "icontains":
            return str(self.value).casefold() in str(current).casefold()
        if self.op == "gt":
            return current > self.value
        if self.op == "gte":
            return current >= self.value
        if self.op == "lt":
            return current < self.value
        return current <= self.value


@dataclass(frozen=True)
class AnyOf:
    """
    Disjunction of conjunctions: `(a AND b) OR (c AND d) ...`.

    Used for keyset tie-breaks: `sort > v OR (sort = v AND id > cid)`.
    """

    branches: Tuple[Tuple[Condition, ...], ...]

    def test(self, row: Dict[str, Any]) -> bool:
        return any(all(c.test(row) for c in branch) for branch in self.branches)


@dataclass(frozen=True)
class SortKey:
    column: str
    ascending: bool = True


Predicate = Union[Condition, AnyOf]


@dataclass(frozen=True)
class QuerySpec:
    table: str
    columns: Tuple[str, ...] = ()
    where: Tuple[Predicate, ...] = ()
    order_by: Tuple[SortKey, ...] = ()
    limit: Optional[int] = None

    # ── Builders ──────────────────────────────────────────────────────────

    def select(self, *columns: str) -> "QuerySpec":
        return replace(self, columns=tuple(columns))

    def where_(self, condition: Predicate) -> "QuerySpec":
        return replace(self, where=self.where + (condition,))

    def eq(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "eq", value))

    def neq(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "neq", value))

    def gt(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "gt", value))

    def gte(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "gte", value))

    def lt(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "lt", value))

    def lte(self, column: str, value: Any) -> "QuerySpec":
        return self.where_(Condition(column, "lte", value))

    def in_(self, column: str, values: Iterable[Any]) -> "QuerySpec":
        return self.where_(Condition(column, "in", tuple(values)))

    def is_null(self, column: str) -> "QuerySpec":
        return self.where_(Condition(column, "is_null"))

    def not_null(self, column: str) -> "QuerySpec":
        return self.where_(Condition(column, "not_null"))

    def icontains(self, column: str, text: str) -> "QuerySpec":
        return self.where_(Condition(column, "icontains", text))

    def any_of(self, *branches: Iterable[Condition]) -> "QuerySpec":
        return self.where_(AnyOf(tuple(tuple(b) for b in branches)))

    def order(self, column: str, ascending: bool = True) -> "QuerySpec":
        return replace(self, order_by=self.order_by + (SortKey(column, ascending),))

    def take(self, limit: int) -> "QuerySpec":
        return replace(self, limit=limit)

    # ── Evaluation ────────────────────────────────────────────────────────

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(predicate.test(row) for predicate in self.where)

    def project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if not self.columns:
            return dict(row)
        return {column: row.get(column) for column in self.columns}
