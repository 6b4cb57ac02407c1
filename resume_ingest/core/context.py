"""Explicit application context shared by the ingestion components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from resume_ingest.core.config import Settings
from resume_ingest.services.artifact_store import ArtifactStore, SupabaseArtifactStore
from resume_ingest.services.limiter import AdmissionLimiter
from resume_ingest.services.record_store import RecordStore, SupabaseRecordStore
from resume_ingest.services.structurer import StructuringClient, load_schema


@dataclass(frozen=True)
class AppContext:
    """Store handles, limiters and the structuring client for one process.

    Built once at startup and passed by reference into each component.
    ``fanout_limiter`` is the same object as ``limiter`` unless a separate
    fan-out capacity is configured.
    """

    settings: Settings
    limiter: AdmissionLimiter
    fanout_limiter: AdmissionLimiter
    artifact_store: ArtifactStore
    record_store: RecordStore
    structuring_client: StructuringClient
    resume_schema: dict[str, Any]


def build_context(settings: Settings) -> AppContext:
    limiter = AdmissionLimiter(settings.job_concurrency, name="jobs")
    if settings.fanout_concurrency is None:
        fanout_limiter = limiter
    else:
        fanout_limiter = AdmissionLimiter(settings.fanout_concurrency, name="archive-entries")

    return AppContext(
        settings=settings,
        limiter=limiter,
        fanout_limiter=fanout_limiter,
        artifact_store=SupabaseArtifactStore(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.http_timeout_seconds,
        ),
        record_store=SupabaseRecordStore(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.http_timeout_seconds,
        ),
        structuring_client=StructuringClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.http_timeout_seconds * 2,
        ),
        resume_schema=load_schema(settings.resume_schema_path),
    )


async def close_context(context: AppContext) -> None:
    """Refuse new permits and release network clients."""
    context.limiter.close()
    context.fanout_limiter.close()
    for client in (context.artifact_store, context.record_store, context.structuring_client):
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
