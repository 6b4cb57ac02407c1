from fastapi import FastAPI

from resume_ingest.api.webhooks import router as webhook_router
from resume_ingest.core.config import get_settings
from resume_ingest.core.context import build_context, close_context
from resume_ingest.core.logging import setup_logging
from resume_ingest.services.dispatcher import IngestDispatcher

app = FastAPI(title="Resume Ingest Service")

app.include_router(webhook_router)


@app.on_event("startup")
def _startup() -> None:
    # Fail fast if required env vars are missing.
    settings = get_settings()
    setup_logging(level=settings.log_level)
    context = build_context(settings)
    app.state.context = context
    app.state.dispatcher = IngestDispatcher(context)


@app.on_event("shutdown")
async def _shutdown() -> None:
    dispatcher: IngestDispatcher | None = getattr(app.state, "dispatcher", None)
    if dispatcher is not None:
        await dispatcher.drain()
    context = getattr(app.state, "context", None)
    if context is not None:
        await close_context(context)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
