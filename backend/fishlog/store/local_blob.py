"""
FishLog Backend — Local Filesystem Blob Store
===============================================

What:  BlobStore backed by a directory tree under STORAGE_ROOT/<bucket>.
Why:   Development and single-node deployments need no object-storage service.
How:   Async file I/O with aiofiles; signed URLs are HMAC tokens with an
       expiry timestamp, checked by the /api/v1/files route before it
       serves or accepts bytes.

Security Model:
    1. Every path is resolved and must stay inside the bucket directory
       (blocks ../ traversal even if a caller skipped path validation)
    2. Signed URLs bind (mode, path, expiry); a download token cannot be
       replayed as an upload token
    3. Tokens are compared with hmac.compare_digest
"""

import hashlib
import hmac
import logging
import os
import time
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import quote, urlencode

import aiofiles

from fishlog.config import settings
from fishlog.store.base import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    def __init__(
        self,
        root: Optional[str] = None,
        bucket: Optional[str] = None,
        signing_secret: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self.bucket = bucket or settings.photo_bucket
        self.root = (Path(root or settings.storage_root) / self.bucket).resolve()
        self.signing_secret = (signing_secret or settings.blob_signing_secret).encode()
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Absolute location for `path`; rejects anything escaping the bucket."""
        candidate = (self.root / path).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            raise BlobStoreError(f"Invalid blob path '{path}'") from None
        if candidate == self.root:
            raise BlobStoreError(f"Invalid blob path '{path}'")
        return candidate

    # ── Object operations ─────────────────────────────────────────────────

    async def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        target = self.resolve(path)
        if not upsert and target.exists():
            raise BlobStoreError(f"Object '{path}' already exists", status_code=409)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store blob %s: %s", path, str(e))
            raise BlobStoreError(f"Failed to write '{path}': {e}") from e
        logger.info("Blob stored: %s (%d bytes, %s)", path, len(data), content_type)

    async def read(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            async with aiofiles.open(target, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise BlobStoreError(f"Object '{path}' not found", status_code=404) from None
        except OSError as e:
            raise BlobStoreError(f"Failed to read '{path}': {e}") from e

    async def remove(self, paths: Sequence[str]) -> None:
        for path in paths:
            target = self.resolve(path)
            try:
                os.remove(target)
                logger.info("Blob removed: %s", path)
            except FileNotFoundError:
                logger.debug("Blob already gone: %s", path)
            except OSError as e:
                raise BlobStoreError(f"Failed to remove '{path}': {e}") from e

    async def list(self, prefix: str) -> List[str]:
        folder = self.resolve(prefix) if prefix else self.root
        if not folder.is_dir():
            return []
        return sorted(entry.name for entry in folder.iterdir() if entry.is_file())

    # ── Signed URLs ───────────────────────────────────────────────────────

    def _sign(self, mode: str, path: str, expires: int) -> str:
        message = f"{mode}:{path}:{expires}".encode()
        return hmac.new(self.signing_secret, message, hashlib.sha256).hexdigest()[:40]

    def _signed_url(self, mode: str, path: str, expires_in: int) -> str:
        self.resolve(path)
        expires = int(time.time()) + expires_in
        query = urlencode({"mode": mode, "expires": expires, "token": self._sign(mode, path, expires)})
        return f"{self.public_base_url}/api/v1/files/{quote(path)}?{query}"

    def verify_signature(self, mode: str, path: str, expires: int, token: str) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._sign(mode, path, expires), token)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        return self._signed_url("download", path, expires_in)

    async def create_signed_upload_url(self, path: str, expires_in: int) -> str:
        return self._signed_url("upload", path, expires_in)
