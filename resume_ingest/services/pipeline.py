"""Single-document resume ingestion: fetch → extract → structure → persist."""

import asyncio
from typing import Callable
from uuid import UUID

from resume_ingest.core.context import AppContext
from resume_ingest.core.errors import (
    ExtractionError,
    FetchError,
    PersistenceError,
    StructuringError,
)
from resume_ingest.core.logging import get_logger
from resume_ingest.models.ingest import ExtractedRecord, JobKind, JobStatus
from resume_ingest.services.artifact_store import RESUME_BUCKET
from resume_ingest.services.job_status import JobStatusTracker
from resume_ingest.services.parser import extract_pdf_text
from resume_ingest.services.persister import RecordPersister

logger = get_logger(__name__)

KIND = JobKind.SINGLE_DOCUMENT


class ResumePipeline:
    """Runs one resume job to a terminal status under an admission permit."""

    def __init__(
        self,
        context: AppContext,
        *,
        extractor: Callable[[bytes, str], str] = extract_pdf_text,
    ) -> None:
        self._limiter = context.limiter
        self._artifacts = context.artifact_store
        self._structurer = context.structuring_client
        self._schema = context.resume_schema
        self._status = JobStatusTracker(context.record_store)
        self._persister = RecordPersister(context.record_store)
        self._extract = extractor

    async def run(self, job_id: UUID, filename: str) -> JobStatus:
        """Process a resume job and return its terminal status."""
        async with self._limiter.permit(f"Job {job_id}"):
            try:
                return await self._process(job_id, filename)
            except Exception as exc:
                error_msg = f"{type(exc).__name__}: {exc}"
                logger.exception("Job %s: unexpected failure - %s", job_id, error_msg)
                return await self._fail(job_id, filename, error_msg)

    async def _process(self, job_id: UUID, filename: str) -> JobStatus:
        await self._status.mark(KIND, job_id, JobStatus.PROCESSING)
        logger.info("Job %s: processing resume %s", job_id, filename)

        # 1. Download
        try:
            pdf_data = await self._artifacts.get(RESUME_BUCKET, filename)
        except FetchError as e:
            return await self._fail(job_id, filename, f"Failed to download pdf: {e}")

        # 2. Extract text off the event loop
        try:
            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(None, self._extract, pdf_data, filename)
        except ExtractionError as e:
            return await self._fail(job_id, filename, str(e))
        logger.debug("Job %s: PDF text contents: %s", job_id, text)

        # 3. Structure
        try:
            structured = await self._structurer.structure(text, self._schema)
        except StructuringError as e:
            logger.warning("Job %s: %s (%s)", job_id, type(e).__name__, e)
            return await self._fail(job_id, filename, str(e))
        logger.info("Job %s: structured JSON received", job_id)
        logger.debug("Job %s: structured JSON: %s", job_id, structured)

        # 4. Persist
        try:
            await self._persister.save_extraction(
                ExtractedRecord(id=job_id, filename=filename, text=text, structured=structured)
            )
        except PersistenceError as e:
            return await self._fail(job_id, filename, f"Failed to update database record: {e}")

        await self._status.mark(KIND, job_id, JobStatus.COMPLETED)
        logger.info("Job %s: completed (filename: %s)", job_id, filename)
        return JobStatus.COMPLETED

    async def _fail(self, job_id: UUID, filename: str, error_msg: str) -> JobStatus:
        logger.error("Job %s: failed - %s (filename: %s)", job_id, error_msg, filename)
        await self._status.mark(KIND, job_id, JobStatus.FAILED, error_msg)
        return JobStatus.FAILED
