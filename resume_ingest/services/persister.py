"""Writes extraction results and archive back-references."""

from uuid import UUID

from resume_ingest.core.logging import get_logger
from resume_ingest.models.ingest import ExtractedRecord
from resume_ingest.services.record_store import RecordStore

logger = get_logger(__name__)


class RecordPersister:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def save_extraction(self, record: ExtractedRecord) -> None:
        """Store text and structured JSON together on the resume row.

        Raises:
            ValueError: If either half of the extraction is missing
            PersistenceError: If the row update fails
        """
        if record.text is None or record.structured is None:
            raise ValueError("Text and structured data are written together.")
        await self._store.update_record(record.id, record.text, record.structured)
        logger.info("Resume record %s (filename: %s) updated", record.id, record.filename)

    async def link_to_archive(self, archive_id: UUID, upload_path: str) -> int:
        """Set zip_id on the resume whose filename is upload_path.

        Returns:
            Number of rows affected (0 while the row does not exist yet)
        """
        return await self._store.link_to_archive(archive_id, upload_path)
