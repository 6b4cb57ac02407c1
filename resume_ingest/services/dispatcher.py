"""Fire-and-forget dispatch of ingestion jobs onto the event loop."""

import asyncio
from typing import Any

from resume_ingest.core.context import AppContext
from resume_ingest.core.logging import get_logger
from resume_ingest.models.ingest import Job, JobKind
from resume_ingest.services.archive import ArchiveExpander
from resume_ingest.services.pipeline import ResumePipeline

logger = get_logger(__name__)


class IngestDispatcher:
    """Schedules jobs in the background and returns to the trigger at once.

    Keeps a strong reference to every in-flight job task; the event loop
    only holds weak ones.
    """

    def __init__(
        self,
        context: AppContext,
        *,
        pipeline: ResumePipeline | None = None,
        expander: ArchiveExpander | None = None,
    ) -> None:
        self.pipeline = pipeline or ResumePipeline(context)
        self.expander = expander or ArchiveExpander(context)
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def submit(self, job: Job) -> asyncio.Task[Any]:
        """Start the job in the background and hand back its task."""
        if job.kind == JobKind.SINGLE_DOCUMENT:
            coro = self.pipeline.run(job.id, job.filename)
        elif job.kind == JobKind.ARCHIVE:
            coro = self.expander.run(job.id, job.filename)
        else:
            raise ValueError(f"Unsupported job kind '{job.kind}'.")

        logger.info("Job %s: accepted %s (%s)", job.id, job.filename, job.kind.value)
        task = asyncio.create_task(coro, name=f"{job.kind.value}:{job.id}")
        self._in_flight.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            logger.warning("Task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Task %s crashed: %s", task.get_name(), exc, exc_info=(type(exc), exc, exc.__traceback__)
            )

    async def drain(self) -> None:
        """Wait for all in-flight jobs and their archive sub-tasks."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
        await self.expander.drain()
