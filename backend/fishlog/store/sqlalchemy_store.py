"""
FishLog Backend — SQLAlchemy Row Store
========================================

What:  RowStore implementation that turns QuerySpec values into SQLAlchemy
       Core statements and runs them on an AsyncSession.
Why:   Keeps every SQLAlchemy construct in one module; services only build
       QuerySpec values.
How:   Tables are looked up in `Base.metadata` by name. Each write commits
       immediately so multi-step operations (insert snapshot, then hours;
       store blob, then link) observe each step as durable, which their
       compensation logic relies on.

Error Translation:
    Any DBAPIError is rolled back and re-raised as StoreError carrying the
    PostgreSQL SQLSTATE (asyncpg exposes it as `sqlstate`, psycopg as
    `pgcode`). Classification into domain errors happens in the error mapper.
"""

import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import Table, and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select

import fishlog.models  # noqa: F401  (registers tables on Base.metadata)
from fishlog.database import Base
from fishlog.store.base import Row, RowStore, StoreError
from fishlog.store.query import AnyOf, Condition, Predicate, QuerySpec

logger = logging.getLogger(__name__)


class SqlAlchemyRowStore(RowStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Statement builders ────────────────────────────────────────────────

    @staticmethod
    def table(name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise ValueError(f"Unknown table '{name}'") from None

    def clause(self, table: Table, predicate: Predicate) -> ColumnElement:
        if isinstance(predicate, AnyOf):
            return or_(
                *(and_(*(self.clause(table, c) for c in branch)) for branch in predicate.branches)
            )
        return self._condition(table, predicate)

    @staticmethod
    def _condition(table: Table, condition: Condition) -> ColumnElement:
        column = table.c[condition.column]
        op, value = condition.op, condition.value
        if op == "eq":
            return column == value
        if op == "neq":
            return column != value
        if op == "gt":
            return column > value
        if op == "gte":
            return column >= value
        if op == "lt":
            return column < value
        if op == "lte":
            return column <= value
        if op == "in":
            return column.in_(list(value))
        if op == "icontains":
            return column.icontains(value, autoescape=True)
        if op == "is_null":
            return column.is_(None)
        return column.is_not(None)

    def _filtered(self, stmt, table: Table, spec: QuerySpec):
        if spec.where:
            stmt = stmt.where(*(self.clause(table, p) for p in spec.where))
        return stmt

    def build_select(self, spec: QuerySpec) -> Select:
        table = self.table(spec.table)
        columns = [table.c[name] for name in spec.columns] if spec.columns else [table]
        stmt = self._filtered(select(*columns), table, spec)
        for key in spec.order_by:
            column = table.c[key.column]
            stmt = stmt.order_by(column.asc() if key.ascending else column.desc())
        if spec.limit is not None:
            stmt = stmt.limit(spec.limit)
        return stmt

    def build_update(self, spec: QuerySpec, values: Row):
        table = self.table(spec.table)
        return self._filtered(update(table), table, spec).values(**values).returning(*table.c)

    def build_delete(self, spec: QuerySpec):
        table = self.table(spec.table)
        return self._filtered(delete(table), table, spec).returning(*table.c)

    def build_count(self, spec: QuerySpec, column: str) -> Select:
        table = self.table(spec.table)
        group_column = table.c[column]
        stmt = select(group_column.label("key"), func.count().label("count"))
        return self._filtered(stmt, table, spec).group_by(group_column)

    # ── Execution ─────────────────────────────────────────────────────────

    async def _execute(self, stmt, write: bool = False) -> List[Row]:
        try:
            result = await self.session.execute(stmt)
            rows = [dict(row) for row in result.mappings().all()]
            if write:
                await self.session.commit()
            return rows
        except DBAPIError as exc:
            await self.session.rollback()
            error = self._to_store_error(exc)
            logger.debug("Store statement failed: %s", error)
            raise error from exc

    @staticmethod
    def _to_store_error(exc: DBAPIError) -> StoreError:
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        cause = getattr(orig, "__cause__", None)
        if code is None and cause is not None:
            code = getattr(cause, "sqlstate", None)
        details = getattr(cause, "detail", None) or getattr(orig, "detail", None)
        return StoreError(code=code, message=str(orig) if orig is not None else str(exc), details=details)

    async def fetch(self, spec: QuerySpec) -> List[Row]:
        return await self._execute(self.build_select(spec))

    async def insert(self, table: str, rows: Sequence[Row]) -> List[Row]:
        if not rows:
            return []
        target = self.table(table)
        stmt = insert(target).values(list(rows)).returning(*target.c)
        return await self._execute(stmt, write=True)

    async def update(self, spec: QuerySpec, values: Row) -> List[Row]:
        return await self._execute(self.build_update(spec, values), write=True)

    async def delete(self, spec: QuerySpec) -> List[Row]:
        return await self._execute(self.build_delete(spec), write=True)

    async def count_by(self, spec: QuerySpec, column: str) -> Dict[Any, int]:
        rows = await self._execute(self.build_count(spec, column))
        return {row["key"]: row["count"] for row in rows}
