"""
FishLog Backend — Catch Photo Schemas
=======================================
"""

from typing import Literal

from pydantic import BaseModel, Field

PhotoExtension = Literal["webp", "jpg", "jpeg", "png"]


class PhotoArtifact(BaseModel):
    """Result of the server-side upload pipeline."""

    photo_path: str = Field(description="Blob path `{owner_id}/{catch_id}.webp`")
    size_bytes: int
    width: int
    height: int


class UploadUrlRequest(BaseModel):
    extension: str = Field(max_length=10, description="File extension for the direct upload")


class UploadUrlResponse(BaseModel):
    path: str
    signed_url: str
    expires_in: int = Field(description="Seconds until the URL expires")


class CommitPhotoRequest(BaseModel):
    photo_path: str = Field(max_length=255)


class DownloadUrlResponse(BaseModel):
    url: str
    expires_in: int
