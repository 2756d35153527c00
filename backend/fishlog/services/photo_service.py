"""
FishLog Backend — Catch Photo Pipeline
========================================

What:  Stores catch photos in the blob store and links them to catches.
Why:   The relational row and the blob live in two systems with no shared
       transaction. The step order below keeps the catch row the source of
       truth: it either points at a real blob or at nothing.
How:   upload_photo() runs four strictly ordered steps:

           1. transform   bytes → WebP            failure → validation_error
           2. store       {owner}/{catch}.webp    failure → internal_error
           3. link        catches.photo_path      failure → remove blob from 2, return error
           4. tidy        remove the previous blob when its path differs (best-effort)

       Step 3 skips the blob removal when the catch already pointed at the
       same path: step 2 overwrote that object in place, and the catch still
       references it.

Direct Upload:
    Clients may also upload straight to the blob store with a signed URL
    and then commit the path. validate_photo_path() is the only gate on a
    client-supplied path.

Path Format:
    {owner_id}/{catch_id}.{ext}     ext ∈ webp, jpg, jpeg, png (case-insensitive)
"""

import logging
from typing import Awaitable, Callable, Optional
from uuid import UUID

from fishlog.config import settings
from fishlog.exceptions import InternalError, NotFoundError, ValidationError
from fishlog.result import ServiceResult
from fishlog.schemas.catch import CatchResponse
from fishlog.schemas.photo import DownloadUrlResponse, PhotoArtifact, UploadUrlResponse
from fishlog.services.error_mapper import map_store_error
from fishlog.services.image_service import ImageTransformError, TransformedImage, transform_image_async
from fishlog.store.base import BlobStore, BlobStoreError, Row, RowStore, StoreError
from fishlog.store.query import QuerySpec

logger = logging.getLogger(__name__)

PHOTO_CONTENT_TYPES = {
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}
ALLOWED_PHOTO_EXTENSIONS = frozenset(PHOTO_CONTENT_TYPES)

Transform = Callable[[bytes], Awaitable[TransformedImage]]


def validate_photo_path(path: str, owner_id) -> bool:
    """True iff `path` is `{owner_id}/{name}.{allowed ext}` with no traversal."""
    if not isinstance(path, str) or ".." in path:
        return False
    segments = path.split("/")
    if len(segments) != 2 or segments[0] != str(owner_id):
        return False
    _, dot, extension = segments[1].rpartition(".")
    return bool(dot) and extension.lower() in ALLOWED_PHOTO_EXTENSIONS


def photo_path_for(owner_id, catch_id, extension: str) -> str:
    return f"{owner_id}/{catch_id}.{extension}"


class PhotoService:
    def __init__(self, rows: RowStore, blobs: BlobStore, transform: Transform = transform_image_async):
        self.rows = rows
        self.blobs = blobs
        self.transform = transform

    @staticmethod
    def validate_path(path: str, owner_id) -> bool:
        return validate_photo_path(path, owner_id)

    async def verify_catch_ownership(self, owner_id: UUID, catch_id: UUID) -> ServiceResult[Row]:
        """The catch row, when it sits on a live trip owned by `owner_id`."""
        not_found = ServiceResult.fail(NotFoundError("catch", catch_id, message="Catch not found"))
        try:
            catch = await self.rows.fetch_one(QuerySpec("catches").eq("id", catch_id))
            if catch is None:
                return not_found
            trip = await self.rows.fetch_one(
                QuerySpec("trips")
                .eq("id", catch["trip_id"])
                .eq("user_id", owner_id)
                .is_null("deleted_at")
            )
        except StoreError as exc:
            return ServiceResult.fail(map_store_error(exc))
        if trip is None:
            return not_found
        return ServiceResult.ok(catch)

    async def _link(self, catch_id: UUID, path: Optional[str]) -> ServiceResult[Row]:
        try:
            updated = await self.rows.update(QuerySpec("catches").eq("id", catch_id), {"photo_path": path})
        except StoreError as exc:
            return ServiceResult.fail(map_store_error(exc))
        if not updated:
            return ServiceResult.fail(NotFoundError("catch", catch_id, message="Catch not found"))
        return ServiceResult.ok(updated[0])

    async def _remove_quietly(self, path: str) -> None:
        try:
            await self.blobs.remove([path])
        except BlobStoreError as exc:
            logger.warning("Could not remove blob %s: %s", path, exc)

    # ── Server-side upload ────────────────────────────────────────────────

    async def upload_photo(self, owner_id: UUID, catch_id: UUID, raw: bytes) -> ServiceResult[PhotoArtifact]:
        if not raw:
            return ServiceResult.fail(ValidationError("Photo is empty", field="file"))
        if len(raw) > settings.photo_max_upload_bytes:
            return ServiceResult.fail(
                ValidationError(
                    f"Photo exceeds {settings.photo_max_upload_bytes // (1024 * 1024)}MB limit",
                    field="file",
                    context={"size_bytes": len(raw)},
                )
            )

        owned = await self.verify_catch_ownership(owner_id, catch_id)
        if not owned.is_ok:
            return ServiceResult.fail(owned.error)
        previous_path = owned.data.get("photo_path")

        # 1. Transform
        try:
            image = await self.transform(raw)
        except ImageTransformError as exc:
            logger.info("Rejected photo for catch %s: %s", catch_id, exc)
            return ServiceResult.fail(ValidationError("Invalid image data", field="file"))

        # 2. Store
        path = photo_path_for(owner_id, catch_id, image.extension)
        try:
            await self.blobs.upload(path, image.data, image.content_type, upsert=True)
        except BlobStoreError as exc:
            logger.error("Photo store failed for catch %s: %s", catch_id, exc)
            return ServiceResult.fail(InternalError(f"Blob upload failed: {exc}", {"path": path}))

        # 3. Link
        linked = await self._link(catch_id, path)
        if not linked.is_ok:
            if previous_path != path:
                logger.warning("Linking photo to catch %s failed, removing %s", catch_id, path)
                await self._remove_quietly(path)
            return ServiceResult.fail(linked.error)

        # 4. Tidy
        if previous_path and previous_path != path:
            await self._remove_quietly(previous_path)

        logger.info(
            "Photo stored for catch %s: %s (%dx%d, %d bytes)",
            catch_id,
            path,
            image.width,
            image.height,
            image.size_bytes,
        )
        return ServiceResult.ok(
            PhotoArtifact(photo_path=path, size_bytes=image.size_bytes, width=image.width, height=image.height)
        )

    # ── Deletion ──────────────────────────────────────────────────────────

    async def delete_photo(self, catch_id: UUID, current_path: Optional[str]) -> ServiceResult[None]:
        """Remove the blob (best-effort), then clear the catch's photo_path."""
        if current_path:
            await self._remove_quietly(current_path)
        cleared = await self._link(catch_id, None)
        if not cleared.is_ok:
            return ServiceResult.fail(cleared.error)
        return ServiceResult.ok(None)

    async def remove_photo(self, owner_id: UUID, catch_id: UUID) -> ServiceResult[None]:
        owned = await self.verify_catch_ownership(owner_id, catch_id)
        if not owned.is_ok:
            return ServiceResult.fail(owned.error)
        current_path = owned.data.get("photo_path")
        if not current_path:
            return ServiceResult.fail(NotFoundError("photo", message="Catch has no photo"))
        return await self.delete_photo(catch_id, current_path)

    # ── Direct upload ─────────────────────────────────────────────────────

    async def create_upload_url(
        self,
        owner_id: UUID,
        catch_id: UUID,
        extension: str,
    ) -> ServiceResult[UploadUrlResponse]:
        extension = extension.lower().lstrip(".")
        if extension not in ALLOWED_PHOTO_EXTENSIONS:
            return ServiceResult.fail(
                ValidationError(
                    f"Unsupported photo extension '{extension}'",
                    field="extension",
                    context={"allowed": sorted(ALLOWED_PHOTO_EXTENSIONS)},
                )
            )
        owned = await self.verify_catch_ownership(owner_id, catch_id)
        if not owned.is_ok:
            return ServiceResult.fail(owned.error)

        path = photo_path_for(owner_id, catch_id, extension)
        expires_in = settings.signed_url_expires_in
        try:
            signed_url = await self.blobs.create_signed_upload_url(path, expires_in)
        except BlobStoreError as exc:
            return ServiceResult.fail(InternalError(f"Signed upload URL failed: {exc}", {"path": path}))
        return ServiceResult.ok(UploadUrlResponse(path=path, signed_url=signed_url, expires_in=expires_in))

    async def commit_photo(self, owner_id: UUID, catch_id: UUID, path: str) -> ServiceResult[CatchResponse]:
        """Link a directly uploaded blob to the catch."""
        if not validate_photo_path(path, owner_id):
            return ServiceResult.fail(ValidationError("Invalid photo path", field="photo_path"))
        # A catch may only link its own object
        if path.rsplit(".", 1)[0] != f"{owner_id}/{catch_id}":
            return ServiceResult.fail(
                ValidationError("Photo path does not belong to this catch", field="photo_path")
            )
        owned = await self.verify_catch_ownership(owner_id, catch_id)
        if not owned.is_ok:
            return ServiceResult.fail(owned.error)

        try:
            exists = await self.blobs.exists(path)
        except BlobStoreError as exc:
            return ServiceResult.fail(InternalError(f"Blob lookup failed: {exc}", {"path": path}))
        if not exists:
            return ServiceResult.fail(ValidationError("Uploaded photo not found", field="photo_path"))

        previous_path = owned.data.get("photo_path")
        linked = await self._link(catch_id, path)
        if not linked.is_ok:
            return ServiceResult.fail(linked.error)
        if previous_path and previous_path != path:
            await self._remove_quietly(previous_path)
        return ServiceResult.ok(CatchResponse.model_validate(linked.data))

    async def create_download_url(self, owner_id: UUID, catch_id: UUID) -> ServiceResult[DownloadUrlResponse]:
        owned = await self.verify_catch_ownership(owner_id, catch_id)
        if not owned.is_ok:
            return ServiceResult.fail(owned.error)
        path = owned.data.get("photo_path")
        if not path:
            return ServiceResult.fail(NotFoundError("photo", message="Catch has no photo"))

        expires_in = settings.signed_url_expires_in
        try:
            url = await self.blobs.create_signed_url(path, expires_in)
        except BlobStoreError as exc:
            return ServiceResult.fail(InternalError(f"Signed download URL failed: {exc}", {"path": path}))
        return ServiceResult.ok(DownloadUrlResponse(url=url, expires_in=expires_in))
