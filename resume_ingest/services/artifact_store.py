"""Artifact storage contract and its Supabase Storage adapter."""

from __future__ import annotations

from typing import Protocol
from urllib.parse import quote

import httpx

from resume_ingest.core.errors import ArtifactNotFoundError, FetchError, UploadError
from resume_ingest.core.logging import get_logger

logger = get_logger(__name__)

RESUME_BUCKET = "resumes"
ARCHIVE_BUCKET = "zip-archives"


class ArtifactStore(Protocol):
    async def get(self, bucket: str, key: str) -> bytes: ...

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> None: ...


def _object_path(bucket: str, key: str) -> str:
    return f"/storage/v1/object/{quote(bucket, safe='')}/{quote(key, safe='/')}"


class SupabaseArtifactStore:
    """Byte-oriented get/put against the Supabase Storage REST API."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {service_key}",
                "apikey": service_key,
            },
            timeout=timeout,
        )

    async def get(self, bucket: str, key: str) -> bytes:
        try:
            response = await self._client.get(_object_path(bucket, key))
        except httpx.HTTPError as exc:
            raise FetchError(f"{bucket}/{key}: {exc}") from exc

        # Storage answers 400 with a "not_found" body for missing objects.
        if response.status_code in (400, 404) and _is_not_found(response):
            raise ArtifactNotFoundError(f"{bucket}/{key} not found")
        if response.is_error:
            raise FetchError(
                f"{bucket}/{key}: HTTP {response.status_code} {response.text[:200]}"
            )
        return response.content

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> None:
        try:
            response = await self._client.post(
                _object_path(bucket, key),
                content=data,
                headers={
                    "Content-Type": content_type,
                    "x-upsert": "true" if upsert else "false",
                },
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"{bucket}/{key}: {exc}") from exc

        if response.is_error:
            raise UploadError(
                f"{bucket}/{key}: HTTP {response.status_code} {response.text[:200]}"
            )
        logger.debug("Uploaded %d bytes to %s/%s", len(data), bucket, key)

    async def aclose(self) -> None:
        await self._client.aclose()


def _is_not_found(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    try:
        body = response.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    marker = str(body.get("error") or body.get("statusCode") or "").lower()
    return marker in {"not_found", "404"}
