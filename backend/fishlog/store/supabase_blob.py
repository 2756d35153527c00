"""
FishLog Backend — Supabase Storage Blob Store
===============================================

What:  BlobStore backed by the Supabase Storage REST API.
Why:   Production keeps catch photos in a private Supabase bucket; clients
       upload/download directly through signed URLs.
How:   One lazily created httpx.AsyncClient authenticated with the service
       key. Transport-level failures (connect errors, timeouts) are retried
       with tenacity; HTTP error statuses are not retried and surface as
       BlobStoreError with the status code attached.

Endpoints used (relative to {SUPABASE_URL}/storage/v1):
    POST   /object/{bucket}/{path}              upload (x-upsert header)
    DELETE /object/{bucket}                     remove {prefixes: [...]}
    POST   /object/list/{bucket}                list {prefix}
    POST   /object/sign/{bucket}/{path}         signed download URL
    POST   /object/upload/sign/{bucket}/{path}  signed upload URL
"""

import logging
from typing import Any, List, Optional, Sequence

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from fishlog.config import settings
from fishlog.store.base import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


class SupabaseBlobStore(BlobStore):
    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        bucket: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = (url or settings.supabase_url).rstrip("/")
        self.service_key = service_key or settings.supabase_service_key
        if not self.url or not self.service_key:
            raise BlobStoreError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be configured")
        self.bucket = bucket or settings.photo_bucket
        self.timeout = timeout or settings.supabase_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create and return the underlying httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/storage/v1",
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        return await client.request(method, endpoint, **kwargs)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._send(method, endpoint, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise BlobStoreError(
                f"Storage HTTP {status} on {method} {endpoint}: {exc.response.text[:300]}",
                status_code=status,
            ) from exc
        except httpx.TimeoutException as exc:
            raise BlobStoreError(f"Storage request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise BlobStoreError(f"Storage request error: {exc}") from exc
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BlobStoreError(f"Storage returned non-JSON payload: {response.text[:300]}") from exc

    # ── Object operations ─────────────────────────────────────────────────

    async def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        await self._request(
            "POST",
            f"/object/{self.bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
        )
        logger.info("Blob stored: %s/%s (%d bytes)", self.bucket, path, len(data))

    async def remove(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        await self._request("DELETE", f"/object/{self.bucket}", json={"prefixes": list(paths)})
        logger.info("Blobs removed: %s", ", ".join(paths))

    async def list(self, prefix: str) -> List[str]:
        response = await self._request(
            "POST",
            f"/object/list/{self.bucket}",
            json={"prefix": prefix, "limit": 1000, "offset": 0},
        )
        entries = self._json(response)
        if not isinstance(entries, list):
            raise BlobStoreError("Storage list returned a non-list response")
        return [str(entry.get("name")) for entry in entries if isinstance(entry, dict)]

    # ── Signed URLs ───────────────────────────────────────────────────────

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        response = await self._request(
            "POST", f"/object/sign/{self.bucket}/{path}", json={"expiresIn": expires_in}
        )
        body = self._json(response)
        signed = body.get("signedURL") if isinstance(body, dict) else None
        if not signed:
            raise BlobStoreError("Storage did not return a signed URL")
        return f"{self.url}/storage/v1{signed}"

    async def create_signed_upload_url(self, path: str, expires_in: int) -> str:
        # Upload tokens have a fixed server-side lifetime; expires_in is
        # reported to callers but not accepted by this endpoint.
        response = await self._request("POST", f"/object/upload/sign/{self.bucket}/{path}")
        body = self._json(response)
        signed = body.get("url") if isinstance(body, dict) else None
        if not signed:
            raise BlobStoreError("Storage did not return a signed upload URL")
        return f"{self.url}/storage/v1{signed}"
