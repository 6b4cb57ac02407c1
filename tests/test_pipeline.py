import asyncio
import unittest
import uuid

from fakes import make_context, make_openai_client
from resume_ingest.core.errors import ExtractionError
from resume_ingest.models.ingest import JobKind, JobStatus
from resume_ingest.services.pipeline import ResumePipeline

PDF_BYTES = b"%PDF-1.4 John Doe resume"


def fake_extractor(data: bytes, name: str) -> str:
    if not data.startswith(b"%PDF"):
        raise ExtractionError(f"PDF text extraction failed for {name}: invalid header")
    return "John Doe, 5 years experience"


class TestResumePipeline(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.openai = make_openai_client('{"name":"John Doe","years_experience":5}')
        self.context = make_context(openai_client=self.openai)
        self.artifacts = self.context.artifact_store
        self.records = self.context.record_store
        self.pipeline = ResumePipeline(self.context, extractor=fake_extractor)
        self.job_id = uuid.uuid4()
        self.records.add_row(JobKind.SINGLE_DOCUMENT, self.job_id, "cv.pdf")

    def _row(self) -> dict:
        return self.records.row(JobKind.SINGLE_DOCUMENT, self.job_id)

    def _statuses(self) -> list[JobStatus]:
        return [status for job_id, status, _ in self.records.status_history if job_id == self.job_id]

    async def test_end_to_end_success(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.COMPLETED)
        row = self._row()
        self.assertEqual(row["status"], JobStatus.COMPLETED)
        self.assertIsNone(row["error_message"])
        self.assertIn("John Doe, 5 years experience", row["text"])
        self.assertEqual(row["structured"], {"name": "John Doe", "years_experience": 5})
        self.assertEqual(self._statuses(), [JobStatus.PROCESSING, JobStatus.COMPLETED])
        self.assertEqual(self.artifacts.gets, [("resumes", "cv.pdf")])
        self.assertEqual(self.context.limiter.in_use, 0)

    async def test_corrupt_pdf_fails_without_structuring(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = b"\x00\x01garbage"

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        row = self._row()
        self.assertEqual(row["status"], JobStatus.FAILED)
        self.assertIn("extraction", row["error_message"])
        self.assertIsNone(row["structured"])
        self.assertEqual(self.openai.chat.completions.create.await_count, 0)

    async def test_missing_artifact_fails_with_fetch_message(self) -> None:
        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertIn("Failed to download pdf", self._row()["error_message"])
        self.assertIsNone(self._row()["structured"])
        self.assertEqual(self.context.limiter.in_use, 0)

    async def test_invalid_structuring_output_fails_job(self) -> None:
        self.openai.chat.completions.create.return_value.choices[0].message.content = "not json"
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertIn("Structuring failed", self._row()["error_message"])
        self.assertIsNone(self._row()["text"])
        self.assertIsNone(self._row()["structured"])

    async def test_no_candidates_fails_job(self) -> None:
        self.openai.chat.completions.create.return_value.choices = []
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertIn("no candidates", self._row()["error_message"])

    async def test_record_write_failure_fails_job(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES
        self.records.fail_record_writes = True

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertIn("Failed to update database record", self._row()["error_message"])
        self.assertIsNone(self._row()["structured"])

    async def test_status_write_failure_does_not_stop_job(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES
        self.records.fail_status_writes = True

        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.COMPLETED)
        self.assertEqual(self._row()["structured"], {"name": "John Doe", "years_experience": 5})
        self.assertEqual(self.records.status_history, [])

    async def test_unexpected_error_marks_failed_and_releases_permit(self) -> None:
        def broken_extractor(data: bytes, name: str) -> str:
            raise RuntimeError("converter worker died")

        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES
        pipeline = ResumePipeline(self.context, extractor=broken_extractor)

        status = await pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertIn("RuntimeError", self._row()["error_message"])
        self.assertEqual(self.context.limiter.in_use, 0)

    async def test_rerun_with_same_id_overwrites_record(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES
        await self.pipeline.run(self.job_id, "cv.pdf")

        self.openai.chat.completions.create.return_value.choices[0].message.content = (
            '{"name":"John Doe","years_experience":6}'
        )
        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.COMPLETED)
        self.assertEqual(len(self.records.rows["resumes"]), 1)
        self.assertEqual(self._row()["structured"], {"name": "John Doe", "years_experience": 6})

    async def test_failed_rerun_keeps_last_successful_record(self) -> None:
        self.artifacts.objects[("resumes", "cv.pdf")] = PDF_BYTES
        await self.pipeline.run(self.job_id, "cv.pdf")

        self.openai.chat.completions.create.return_value.choices[0].message.content = "oops"
        status = await self.pipeline.run(self.job_id, "cv.pdf")

        self.assertEqual(status, JobStatus.FAILED)
        self.assertEqual(self._row()["structured"], {"name": "John Doe", "years_experience": 5})

    async def test_concurrent_jobs_respect_capacity(self) -> None:
        limiter = self.context.limiter
        observed: list[int] = []

        def slow_extractor(data: bytes, name: str) -> str:
            observed.append(limiter.in_use)
            return "text"

        pipeline = ResumePipeline(self.context, extractor=slow_extractor)
        job_ids = [uuid.uuid4() for _ in range(6)]
        for job_id in job_ids:
            self.records.add_row(JobKind.SINGLE_DOCUMENT, job_id, f"{job_id}.pdf")
            self.artifacts.objects[("resumes", f"{job_id}.pdf")] = PDF_BYTES

        statuses = await asyncio.gather(*(pipeline.run(j, f"{j}.pdf") for j in job_ids))

        self.assertEqual(set(statuses), {JobStatus.COMPLETED})
        self.assertLessEqual(max(observed), limiter.capacity)
        self.assertLessEqual(limiter.peak_in_use, limiter.capacity)
        self.assertEqual(limiter.in_use, 0)


if __name__ == "__main__":
    unittest.main()
