from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Job status values as stored in the job_status column."""

    PENDING = "pending"  # Set by the row creator, never written here
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(str, Enum):
    """Kind of ingestion job; each kind lives in its own table."""

    SINGLE_DOCUMENT = "single_document"
    ARCHIVE = "archive"

    @property
    def table(self) -> str:
        return JOB_TABLES[self]


JOB_TABLES: dict[JobKind, str] = {
    JobKind.SINGLE_DOCUMENT: "resumes",
    JobKind.ARCHIVE: "zip_archives",
}


class Job(BaseModel):
    id: UUID
    kind: JobKind
    filename: str


class ExtractedRecord(BaseModel):
    id: UUID
    filename: str | None = None
    text: str | None = None
    structured: dict[str, Any] | None = None


@dataclass(frozen=True)
class ArchiveEntry:
    """One member of an uploaded ZIP archive. Never persisted."""

    name: str
    raw_bytes: bytes
    is_directory: bool

    @property
    def is_pdf(self) -> bool:
        return not self.is_directory and self.name.endswith(".pdf")


@dataclass
class EntryOutcome:
    """Result of one archive-entry re-upload sub-task."""

    upload_path: str
    uploaded: bool = False
    linked: bool = False
    link_attempts: int = 0
    error: str | None = None


class WebhookRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    filename: str


class WebhookPayload(BaseModel):
    """Database webhook body sent when a resume or archive row is inserted."""

    model_config = ConfigDict(extra="ignore")

    type: str
    table: str
    record: WebhookRecord
    db_schema: str | None = Field(None, alias="schema")


class IngestAccepted(BaseModel):
    job_id: UUID
    status: Literal["processing"] = "processing"
    message: str = "We're working on it!"
