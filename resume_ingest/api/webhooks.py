from fastapi import APIRouter, HTTPException, Request, status

from resume_ingest.models.ingest import IngestAccepted, Job, JobKind, WebhookPayload
from resume_ingest.services.dispatcher import IngestDispatcher

router = APIRouter(prefix="/v1/webhooks", tags=["ingestion"])


def _get_dispatcher(request: Request) -> IngestDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ingestion is not ready.",
        )
    return dispatcher


def _accept(request: Request, payload: WebhookPayload, kind: JobKind) -> IngestAccepted:
    if payload.table != kind.table:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expected a '{kind.table}' record, got '{payload.table}'.",
        )
    filename = payload.record.filename
    if not filename.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required.",
        )

    dispatcher = _get_dispatcher(request)
    job = Job(id=payload.record.id, kind=kind, filename=filename)
    dispatcher.submit(job)
    return IngestAccepted(job_id=job.id)


@router.post("/resumes", response_model=IngestAccepted, status_code=status.HTTP_202_ACCEPTED)
async def resume_uploaded(payload: WebhookPayload, request: Request) -> IngestAccepted:
    """Start processing a resume row inserted for an uploaded PDF."""
    return _accept(request, payload, JobKind.SINGLE_DOCUMENT)


@router.post("/zip-archives", response_model=IngestAccepted, status_code=status.HTTP_202_ACCEPTED)
async def archive_uploaded(payload: WebhookPayload, request: Request) -> IngestAccepted:
    """Start expanding a zip archive row inserted for an uploaded ZIP."""
    return _accept(request, payload, JobKind.ARCHIVE)
