"""Status/record store contract and its Supabase PostgREST adapter."""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

import httpx

from resume_ingest.core.errors import PersistenceError
from resume_ingest.models.ingest import JobKind, JobStatus


class RecordStore(Protocol):
    async def update_status(
        self, kind: JobKind, job_id: UUID, status: JobStatus, error_message: str | None
    ) -> None: ...

    async def update_record(self, job_id: UUID, text: str, structured: dict[str, Any]) -> None: ...

    async def link_to_archive(self, archive_id: UUID, filename: str) -> int: ...


class SupabaseRecordStore:
    """Keyed row updates through the PostgREST interface of Supabase."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "Authorization": f"Bearer {service_key}",
                "apikey": service_key,
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    async def _patch(
        self,
        table: str,
        params: dict[str, str],
        body: dict[str, Any],
        *,
        prefer: str = "return=minimal",
    ) -> httpx.Response:
        try:
            response = await self._client.patch(
                f"/{table}", params=params, json=body, headers={"Prefer": prefer}
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{table}: {exc}") from exc
        if response.is_error:
            raise PersistenceError(
                f"{table}: HTTP {response.status_code} {response.text[:200]}"
            )
        return response

    async def update_status(
        self, kind: JobKind, job_id: UUID, status: JobStatus, error_message: str | None
    ) -> None:
        await self._patch(
            kind.table,
            {"id": f"eq.{job_id}"},
            {"status": status.value, "error_message": error_message},
        )

    async def update_record(self, job_id: UUID, text: str, structured: dict[str, Any]) -> None:
        await self._patch(
            JobKind.SINGLE_DOCUMENT.table,
            {"id": f"eq.{job_id}"},
            {"text": text, "structured": structured},
        )

    async def link_to_archive(self, archive_id: UUID, filename: str) -> int:
        response = await self._patch(
            JobKind.SINGLE_DOCUMENT.table,
            {"filename": f"eq.{filename}", "select": "id"},
            {"zip_id": str(archive_id)},
            prefer="return=representation",
        )
        try:
            rows = response.json()
        except ValueError as exc:
            raise PersistenceError(f"resumes: unreadable link response - {exc}") from exc
        return len(rows) if isinstance(rows, list) else 0

    async def aclose(self) -> None:
        await self._client.aclose()
