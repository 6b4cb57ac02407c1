"""ZIP archive expansion: re-upload every PDF entry and link it to the archive."""

from __future__ import annotations

import asyncio
import lzma
import tempfile
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Awaitable, Callable
from uuid import UUID

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
    wait_random,
)

from resume_ingest.core.config import Settings
from resume_ingest.core.context import AppContext
from resume_ingest.core.errors import (
    FetchError,
    IngestError,
    LinkRetryExhausted,
    PersistenceError,
    UploadError,
)
from resume_ingest.core.logging import get_logger
from resume_ingest.models.ingest import ArchiveEntry, EntryOutcome, JobKind, JobStatus
from resume_ingest.services.artifact_store import ARCHIVE_BUCKET, RESUME_BUCKET
from resume_ingest.services.job_status import JobStatusTracker
from resume_ingest.services.parser import PDF_CONTENT_TYPE
from resume_ingest.services.persister import RecordPersister

logger = get_logger(__name__)

KIND = JobKind.ARCHIVE

# Per-entry failures inside an otherwise readable archive: bad CRC or header,
# corrupt compressed stream, truncated data, unsupported or encrypted entries.
ENTRY_READ_ERRORS = (
    zipfile.BadZipFile,
    OSError,
    RuntimeError,
    EOFError,
    NotImplementedError,
    zlib.error,
    lzma.LZMAError,
)


@dataclass(frozen=True)
class LinkRetryPolicy:
    """How often and how patiently to wait for a re-uploaded resume row."""

    attempts: int = 3
    delay: float = 0.5
    jitter: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LinkRetryPolicy":
        return cls(
            attempts=settings.link_retry_attempts,
            delay=settings.link_retry_delay_ms / 1000,
            jitter=settings.link_retry_jitter_ms / 1000,
        )

    def wait_strategy(self):
        strategy = wait_fixed(self.delay)
        if self.jitter > 0:
            strategy = strategy + wait_random(0, self.jitter)
        return strategy


@dataclass
class ArchiveDispatch:
    """Outcome of an archive job plus handles on its fanned-out sub-tasks.

    ``status`` reflects enumeration and dispatch only. Awaiting ``wait()``
    gives the per-entry outcomes without affecting the archive status.
    """

    archive_id: UUID
    status: JobStatus
    tasks: list[asyncio.Task[EntryOutcome]] = field(default_factory=list)

    @property
    def upload_paths(self) -> list[str]:
        return [task.get_name() for task in self.tasks]

    async def wait(self) -> list[EntryOutcome]:
        if not self.tasks:
            return []
        return list(await asyncio.gather(*self.tasks))


def read_archive_entries(data: bytes) -> list[ArchiveEntry]:
    """Materialize ZIP bytes to a temp file and list its entries in order.

    Only PDF entries are read; other entries carry empty bytes. Entries
    that cannot be read are logged and left out.

    Raises:
        zipfile.BadZipFile: If the payload is not a ZIP container
    """
    entries: list[ArchiveEntry] = []
    with tempfile.TemporaryFile() as tmp_file:
        tmp_file.write(data)
        tmp_file.seek(0)
        with zipfile.ZipFile(tmp_file) as archive:
            infos = archive.infolist()
            logger.info("Opened zip archive with %d files", len(infos))
            for info in infos:
                entry = ArchiveEntry(name=info.filename, raw_bytes=b"", is_directory=info.is_dir())
                if not entry.is_pdf:
                    entries.append(entry)
                    continue
                try:
                    raw = archive.read(info)
                except ENTRY_READ_ERRORS as e:
                    logger.error("Failed to read file %s in zip: %s", info.filename, e)
                    continue
                entries.append(ArchiveEntry(name=info.filename, raw_bytes=raw, is_directory=False))
    return entries


class ArchiveExpander:
    """Runs one archive job and fans out a re-upload per PDF entry.

    Sub-tasks are fire-and-forget with respect to the archive status: the
    archive is marked completed once every entry has been dispatched.
    """

    def __init__(
        self,
        context: AppContext,
        *,
        retry_policy: LinkRetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._limiter = context.limiter
        self._fanout_limiter = context.fanout_limiter
        self._artifacts = context.artifact_store
        self._status = JobStatusTracker(context.record_store)
        self._persister = RecordPersister(context.record_store)
        self._retry_policy = retry_policy or LinkRetryPolicy.from_settings(context.settings)
        self._sleep = sleep
        self._pending: set[asyncio.Task[EntryOutcome]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def run(self, archive_id: UUID, filename: str) -> ArchiveDispatch:
        async with self._limiter.permit(f"Archive {archive_id}"):
            try:
                return await self._expand(archive_id, filename)
            except Exception as exc:
                error_msg = f"{type(exc).__name__}: {exc}"
                logger.exception("Archive %s: unexpected failure - %s", archive_id, error_msg)
                return await self._fail(archive_id, filename, error_msg)

    async def drain(self) -> None:
        """Wait until every dispatched sub-task has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _expand(self, archive_id: UUID, filename: str) -> ArchiveDispatch:
        await self._status.mark(KIND, archive_id, JobStatus.PROCESSING)
        logger.info("Archive %s: processing %s", archive_id, filename)

        try:
            zip_data = await self._artifacts.get(ARCHIVE_BUCKET, filename)
        except FetchError as e:
            return await self._fail(archive_id, filename, f"Failed to download zip: {e}")

        try:
            loop = asyncio.get_running_loop()
            entries = await loop.run_in_executor(None, read_archive_entries, zip_data)
        except (zipfile.BadZipFile, OSError) as e:
            return await self._fail(archive_id, filename, f"Failed to open zip archive: {e}")

        dispatch = ArchiveDispatch(archive_id=archive_id, status=JobStatus.COMPLETED)
        for entry in entries:
            if not entry.is_pdf:
                logger.debug("Archive %s: skipping %s", archive_id, entry.name)
                continue
            upload_path = f"{filename}_{entry.name}"
            dispatch.tasks.append(self._spawn(archive_id, upload_path, entry.raw_bytes))

        logger.info(
            "Archive %s: dispatched %d of %d entries", archive_id, len(dispatch.tasks), len(entries)
        )
        await self._status.mark(KIND, archive_id, JobStatus.COMPLETED)
        return dispatch

    def _spawn(self, archive_id: UUID, upload_path: str, data: bytes) -> asyncio.Task[EntryOutcome]:
        task = asyncio.create_task(
            self._upload_and_link(archive_id, upload_path, data), name=upload_path
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _upload_and_link(self, archive_id: UUID, upload_path: str, data: bytes) -> EntryOutcome:
        outcome = EntryOutcome(upload_path=upload_path)
        try:
            async with self._fanout_limiter.permit(f"Archive {archive_id} entry {upload_path}"):
                try:
                    await self._artifacts.put(
                        RESUME_BUCKET, upload_path, data, content_type=PDF_CONTENT_TYPE, upsert=False
                    )
                except UploadError as e:
                    logger.error("Failed to upload extracted PDF %s: %s", upload_path, e)
                    outcome.error = str(e)
                    return outcome

                outcome.uploaded = True
                logger.info("Re-uploaded extracted PDF: %s", upload_path)
                await self._link(archive_id, outcome)
        except IngestError as e:
            logger.error("Archive %s: entry %s aborted - %s", archive_id, upload_path, e)
            outcome.error = str(e)
        except Exception as e:
            logger.exception("Archive %s: entry %s crashed", archive_id, upload_path)
            outcome.error = f"{type(e).__name__}: {e}"
        return outcome

    async def _link(self, archive_id: UUID, outcome: EntryOutcome) -> None:
        # The resume row is created by a separate trigger reacting to the
        # upload, so it may not exist on the first attempts.
        policy = self._retry_policy
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=policy.wait_strategy(),
            retry=(
                retry_if_result(lambda affected: affected == 0)
                | retry_if_exception_type(PersistenceError)
            ),
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    outcome.link_attempts = attempt.retry_state.attempt_number
                    try:
                        affected = await self._persister.link_to_archive(
                            archive_id, outcome.upload_path
                        )
                    except PersistenceError as e:
                        logger.error(
                            "Failed to link resume %s to zip_id %s: %s",
                            outcome.upload_path,
                            archive_id,
                            e,
                        )
                        raise
                    if affected == 0:
                        logger.warning(
                            "Resume row not found for linking (attempt %d): %s",
                            outcome.link_attempts,
                            outcome.upload_path,
                        )
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(affected)
        except RetryError:
            exhausted = LinkRetryExhausted(
                f"Resume {outcome.upload_path} not linked to zip_id {archive_id} "
                f"after {outcome.link_attempts} attempts"
            )
            logger.warning("%s", exhausted)
            outcome.error = str(exhausted)
            return

        outcome.linked = True
        logger.info("Linked resume %s to zip_id %s", outcome.upload_path, archive_id)

    async def _fail(self, archive_id: UUID, filename: str, error_msg: str) -> ArchiveDispatch:
        logger.error("Archive %s: failed - %s (filename: %s)", archive_id, error_msg, filename)
        await self._status.mark(KIND, archive_id, JobStatus.FAILED, error_msg)
        return ArchiveDispatch(archive_id=archive_id, status=JobStatus.FAILED)
