"""
FishLog Backend — Equipment Catalog Service
=============================================

What:  CRUD over one equipment kind (rods, lures or groundbaits) for one
       owner: list with name search, get, create, rename, soft delete.
Why:   Trip assignments only accept the owner's live equipment, so this is
       where that equipment comes from and where it is retired.

Names:
    Unique per owner among live rows. The database enforces it through the
    partial index <kind>_user_name_unique; the error mapper turns a
    duplicate into a conflict ("Rod with this name already exists"). A
    soft-deleted rod frees its name.

Soft Delete:
    Sets deleted_at once. A second delete is not_found. Soft-deleted rows
    stay readable by id and renamable, and existing trip assignments keep
    their name snapshots.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fishlog.exceptions import NotFoundError
from fishlog.result import ServiceResult
from fishlog.schemas.common import Page, PageInfo
from fishlog.schemas.equipment import (
    EquipmentCreate,
    EquipmentListFilters,
    EquipmentResponse,
    EquipmentUpdate,
)
from fishlog.services.base import StoreBackedService
from fishlog.services.equipment_service import get_kind
from fishlog.services.pagination import PageRequest, paginate
from fishlog.store.base import RowStore, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)


class EquipmentCatalogService(StoreBackedService):
    def __init__(self, rows: RowStore, kind: str, owner_id: Optional[UUID] = None):
        super().__init__(rows, owner_id)
        self.kind = get_kind(kind)

    def _query(self, include_deleted: bool = True) -> QuerySpec:
        spec = QuerySpec(self.kind.table)
        if not include_deleted:
            spec = spec.is_null("deleted_at")
        if self.owner_id is not None:
            spec = spec.eq("user_id", self.owner_id)
        return spec

    def _not_found(self, equipment_id: UUID) -> ServiceResult:
        return ServiceResult.fail(
            NotFoundError(self.kind.singular, equipment_id, message=f"{self.kind.label} not found")
        )

    async def list(self, filters: EquipmentListFilters) -> ServiceResult[Page[EquipmentResponse]]:
        spec = self._query(include_deleted=filters.include_deleted)
        if filters.q:
            spec = spec.icontains("name", filters.q)

        page = await paginate(
            self.rows,
            spec,
            PageRequest(filters.sort, filters.order, filters.limit, filters.cursor),
        )
        if not page.is_ok:
            return ServiceResult.fail(page.error)
        rows, next_cursor = page.data
        return ServiceResult.ok(
            Page[EquipmentResponse](
                data=[EquipmentResponse.model_validate(row) for row in rows],
                page=PageInfo(limit=filters.limit, next_cursor=next_cursor),
            )
        )

    async def get_by_id(self, equipment_id: UUID) -> ServiceResult[EquipmentResponse]:
        try:
            row = await self.rows.fetch_one(self._query().eq("id", equipment_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if row is None:
            return self._not_found(equipment_id)
        return ServiceResult.ok(EquipmentResponse.model_validate(row))

    async def create(self, data: EquipmentCreate) -> ServiceResult[EquipmentResponse]:
        if self.owner_id is None:
            raise RuntimeError(f"Creating a {self.kind.singular} requires an owner_id")
        try:
            inserted = await self.rows.insert(self.kind.table, [{"user_id": self.owner_id, "name": data.name}])
        except StoreError as exc:
            return self.store_failure(exc)
        logger.info("%s created: %s", self.kind.label, inserted[0]["id"])
        return ServiceResult.ok(EquipmentResponse.model_validate(inserted[0]))

    async def update(self, equipment_id: UUID, changes: EquipmentUpdate) -> ServiceResult[EquipmentResponse]:
        values = changes.model_dump(include=changes.model_fields_set)
        if not values:
            return await self.get_by_id(equipment_id)
        try:
            updated = await self.rows.update(self._query().eq("id", equipment_id), values)
        except StoreError as exc:
            return self.store_failure(exc)
        if not updated:
            return self._not_found(equipment_id)
        return ServiceResult.ok(EquipmentResponse.model_validate(updated[0]))

    async def soft_delete(self, equipment_id: UUID) -> ServiceResult[None]:
        try:
            updated = await self.rows.update(
                self._query(include_deleted=False).eq("id", equipment_id),
                {"deleted_at": datetime.now(timezone.utc)},
            )
        except StoreError as exc:
            return self.store_failure(exc)
        if not updated:
            return self._not_found(equipment_id)
        logger.info("%s soft-deleted: %s", self.kind.label, equipment_id)
        return ServiceResult.ok(None)
