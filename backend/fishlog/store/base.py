"""
FishLog Backend — Store Capability Interfaces
===============================================

What:  The two collaborator interfaces the domain services consume:
       RowStore (relational rows) and BlobStore (binary objects).
Why:   Services receive these explicitly in their constructor instead of
       reaching for a global client, so tests can hand them an in-memory
       implementation and production can hand them SQLAlchemy / Supabase.
How:   Abstract base classes; implementations raise StoreError / BlobStoreError
       for every failure. Services never let these escape: store errors go
       through the error mapper, blob errors become InternalError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from fishlog.store.query import QuerySpec

Row = Dict[str, Any]


class StoreError(Exception):
    """
    Raw failure signal from the relational store.

    Attributes:
        code:     SQLSTATE (e.g. '23505') or provider code (e.g. 'PGRST116'), if known
        message:  Raw database message, may mention constraint names
        details:  Extra provider detail text
    """

    def __init__(self, code: Optional[str], message: str, details: Optional[str] = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code}] {message}" if code else message)


class BlobStoreError(Exception):
    """Failure reported by a blob store backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RowStore(ABC):
    """Executes QuerySpec values against a relational backend."""

    @abstractmethod
    async def fetch(self, spec: QuerySpec) -> List[Row]:
        """Rows matching the spec, in the spec's order."""

    async def fetch_one(self, spec: QuerySpec) -> Optional[Row]:
        rows = await self.fetch(spec.take(1))
        return rows[0] if rows else None

    @abstractmethod
    async def insert(self, table: str, rows: Sequence[Row]) -> List[Row]:
        """Insert rows and return them as stored (defaults filled in)."""

    @abstractmethod
    async def update(self, spec: QuerySpec, values: Row) -> List[Row]:
        """Update matching rows and return them after the update."""

    @abstractmethod
    async def delete(self, spec: QuerySpec) -> List[Row]:
        """Delete matching rows and return them as they were."""

    @abstractmethod
    async def count_by(self, spec: QuerySpec, column: str) -> Dict[Any, int]:
        """Count matching rows grouped by `column`."""


class BlobStore(ABC):
    """Stores binary objects under `{owner}/{name}` style paths in one bucket."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        ...

    @abstractmethod
    async def remove(self, paths: Sequence[str]) -> None:
        """Remove objects. Missing objects are not an error."""

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """Object names directly under `prefix` (a folder)."""

    async def exists(self, path: str) -> bool:
        folder, _, name = path.rpartition("/")
        return name in await self.list(folder)

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int) -> str:
        ...

    @abstractmethod
    async def create_signed_upload_url(self, path: str, expires_in: int) -> str:
        ...
