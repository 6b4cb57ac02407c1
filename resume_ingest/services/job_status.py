"""Best-effort job status writes."""

from uuid import UUID

from resume_ingest.core.errors import PersistenceError
from resume_ingest.core.logging import get_logger
from resume_ingest.models.ingest import JobKind, JobStatus
from resume_ingest.services.record_store import RecordStore

logger = get_logger(__name__)


class JobStatusTracker:
    """Moves a job row through processing → completed | failed.

    A failed status write is logged and swallowed; the job carries on with
    whatever its in-memory outcome dictates.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def mark(
        self,
        kind: JobKind,
        job_id: UUID,
        status: JobStatus,
        error_message: str | None = None,
    ) -> bool:
        if status == JobStatus.PENDING:
            raise ValueError("Pending is set by the row creator, not by ingestion.")
        if status != JobStatus.FAILED:
            error_message = None

        try:
            await self._store.update_status(kind, job_id, status, error_message)
        except PersistenceError as e:
            logger.error(
                "Job %s: failed to write status '%s' - %s", job_id, status.value, e
            )
            return False

        logger.debug("Job %s: status -> %s", job_id, status.value)
        return True
