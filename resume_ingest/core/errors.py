"""Error taxonomy for ingestion jobs.

Every error a job can record derives from IngestError. The first terminal
error stops a job and is written to its status row; errors never cross job
or archive sub-task boundaries.
"""


class IngestError(Exception):
    """Base class for ingestion failures."""


class FetchError(IngestError):
    """Artifact could not be downloaded from the artifact store."""


class ArtifactNotFoundError(FetchError):
    """Requested bucket/key does not exist."""


class UploadError(IngestError):
    """Artifact could not be written to the artifact store."""


class ExtractionError(IngestError):
    """PDF bytes could not be turned into text."""


class StructuringError(IngestError):
    """Structuring service did not return a usable JSON document."""


class StructuringRequestError(StructuringError):
    """Network or API failure talking to the structuring service."""


class EmptyCandidatesError(StructuringError):
    """Structuring service answered without any candidate message."""


class InvalidStructuredContentError(StructuringError):
    """Candidate content is not valid JSON."""


class PersistenceError(IngestError):
    """Status or record write against the backing store failed."""


class LinkRetryExhausted(IngestError):
    """Archive back-reference never attached within the retry budget."""


class LimiterClosedError(IngestError):
    """Admission limiter was shut down while a caller waited for a permit."""
