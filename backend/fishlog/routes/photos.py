"""
FishLog Backend — Catch Photo Route Handlers
==============================================

What:  Catch photo upload (server-side transform), removal, and the
       signed-URL direct upload/download flow.

    POST   /api/v1/catches/{id}/photo                multipart, field "file"
    DELETE /api/v1/catches/{id}/photo
    POST   /api/v1/catches/{id}/photo/upload-url     → signed PUT URL
    POST   /api/v1/catches/{id}/photo/commit         link an uploaded path
    GET    /api/v1/catches/{id}/photo/download-url   → signed GET URL
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Response, UploadFile

from fishlog.config import settings
from fishlog.routes.deps import get_current_user_id, get_photo_service
from fishlog.schemas.catch import CatchResponse
from fishlog.schemas.common import ErrorResponse
from fishlog.schemas.photo import (
    CommitPhotoRequest,
    DownloadUrlResponse,
    PhotoArtifact,
    UploadUrlRequest,
    UploadUrlResponse,
)
from fishlog.services.photo_service import PhotoService

router = APIRouter(prefix="/api/v1/catches/{catch_id}/photo", tags=["Photos"])

ERROR_RESPONSES = {
    400: {"description": "Invalid image, extension or path", "model": ErrorResponse},
    404: {"description": "Catch or photo not found", "model": ErrorResponse},
    500: {"description": "Blob storage failure", "model": ErrorResponse},
}


@router.post("", status_code=201, response_model=PhotoArtifact, responses=ERROR_RESPONSES)
async def upload_photo(
    catch_id: UUID,
    file: UploadFile = File(..., description="JPEG, PNG or WebP photo"),
    user_id: UUID = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service),
):
    # One byte past the limit is enough for the service to reject it
    raw = await file.read(settings.photo_max_upload_bytes + 1)
    return (await service.upload_photo(user_id, catch_id, raw)).unwrap()


@router.delete("", status_code=204, responses=ERROR_RESPONSES)
async def delete_photo(
    catch_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service),
) -> Response:
    (await service.remove_photo(user_id, catch_id)).unwrap()
    return Response(status_code=204)


@router.post("/upload-url", response_model=UploadUrlResponse, responses=ERROR_RESPONSES)
async def create_upload_url(
    catch_id: UUID,
    body: UploadUrlRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service),
):
    return (await service.create_upload_url(user_id, catch_id, body.extension)).unwrap()


@router.post("/commit", response_model=CatchResponse, responses=ERROR_RESPONSES)
async def commit_photo(
    catch_id: UUID,
    body: CommitPhotoRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service),
):
    return (await service.commit_photo(user_id, catch_id, body.photo_path)).unwrap()


@router.get("/download-url", response_model=DownloadUrlResponse, responses=ERROR_RESPONSES)
async def create_download_url(
    catch_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service),
):
    return (await service.create_download_url(user_id, catch_id)).unwrap()
