"""
FishLog Backend — Local Blob File Route
=========================================

What:  Serves and accepts blobs for the local blob backend through the
       signed URLs LocalBlobStore issues.
Why:   The Supabase backend hands out its own URLs; the local backend needs
       an endpoint behind its signatures.

    GET /api/v1/files/{path}?mode=download&expires=…&token=…
    PUT /api/v1/files/{path}?mode=upload&expires=…&token=…   (raw body)

No X-User-Id is required; the token is the authorization.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, Response

from fishlog.config import settings
from fishlog.exceptions import InternalError, NotFoundError, ValidationError
from fishlog.routes.deps import get_blob_store
from fishlog.services.photo_service import PHOTO_CONTENT_TYPES
from fishlog.store.base import BlobStore, BlobStoreError
from fishlog.store.local_blob import LocalBlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["Files"])


def _local_store(blobs: BlobStore) -> LocalBlobStore:
    if not isinstance(blobs, LocalBlobStore):
        raise NotFoundError("file", message="File not found")
    return blobs


def _check_token(store: LocalBlobStore, mode: str, path: str, expires: int, token: str) -> None:
    try:
        store.resolve(path)
    except BlobStoreError:
        raise ValidationError("Invalid file path", field="path") from None
    if not store.verify_signature(mode, path, expires, token):
        logger.warning("Rejected %s token for %s", mode, path)
        raise NotFoundError("file", message="File not found")


@router.get("/{file_path:path}")
async def download_file(
    file_path: str,
    expires: int = Query(...),
    token: str = Query(...),
    blobs: BlobStore = Depends(get_blob_store),
) -> Response:
    store = _local_store(blobs)
    _check_token(store, "download", file_path, expires, token)
    try:
        data = await store.read(file_path)
    except BlobStoreError:
        raise NotFoundError("file", message="File not found") from None

    extension = file_path.rpartition(".")[2].lower()
    return Response(
        content=data,
        media_type=PHOTO_CONTENT_TYPES.get(extension, "application/octet-stream"),
        headers={"Cache-Control": "private, max-age=300"},
    )


@router.put("/{file_path:path}", status_code=200)
async def upload_file(
    file_path: str,
    request: Request,
    expires: int = Query(...),
    token: str = Query(...),
    blobs: BlobStore = Depends(get_blob_store),
) -> dict:
    store = _local_store(blobs)
    _check_token(store, "upload", file_path, expires, token)

    data = await request.body()
    if len(data) > settings.photo_max_upload_bytes:
        raise ValidationError("Upload exceeds size limit", field="body", context={"size_bytes": len(data)})
    extension = file_path.rpartition(".")[2].lower()
    try:
        await store.upload(file_path, data, PHOTO_CONTENT_TYPES.get(extension, "application/octet-stream"))
    except BlobStoreError as exc:
        raise InternalError(f"Local upload failed: {exc}", {"path": file_path}) from exc
    return {"path": file_path, "size_bytes": len(data)}
