"""
FishLog Backend — Fish Species Service
========================================

What:  Read-only access to the shared species dictionary: paged list with a
       name search, and lookup by id. Rows are seeded by migrations.
"""

from uuid import UUID

from fishlog.exceptions import NotFoundError
from fishlog.result import ServiceResult
from fishlog.schemas.common import Page, PageInfo
from fishlog.schemas.species import FishSpeciesResponse, SpeciesListFilters
from fishlog.services.base import StoreBackedService
from fishlog.services.pagination import PageRequest, paginate
from fishlog.store.base import StoreError
from fishlog.store.query import QuerySpec


class FishSpeciesService(StoreBackedService):
    async def list(self, filters: SpeciesListFilters) -> ServiceResult[Page[FishSpeciesResponse]]:
        spec = QuerySpec("fish_species")
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
            Page[FishSpeciesResponse](
                data=[FishSpeciesResponse.model_validate(row) for row in rows],
                page=PageInfo(limit=filters.limit, next_cursor=next_cursor),
            )
        )

    async def get_by_id(self, species_id: UUID) -> ServiceResult[FishSpeciesResponse]:
        try:
            row = await self.rows.fetch_one(QuerySpec("fish_species").eq("id", species_id))
        except StoreError as exc:
            return self.store_failure(exc)
        if row is None:
            return ServiceResult.fail(NotFoundError("fish_species", species_id, message="Fish species not found"))
        return ServiceResult.ok(FishSpeciesResponse.model_validate(row))
