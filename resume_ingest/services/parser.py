"""PDF text extraction with Docling."""

from io import BytesIO

from resume_ingest.core.errors import ExtractionError
from resume_ingest.core.logging import get_logger

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

_converter = None


def _get_converter():
    """Lazy initialization of the Docling converter (model loading is slow)."""
    global _converter
    if _converter is None:
        try:
            from docling.document_converter import DocumentConverter
        except ImportError as exc:
            raise ExtractionError("Docling required. Install with: pip install docling") from exc
        _converter = DocumentConverter()
    return _converter


def _convert(data: bytes, name: str):
    from docling.datamodel.base_models import DocumentStream

    stream = DocumentStream(name=name, stream=BytesIO(data))
    return _get_converter().convert(stream)


def extract_pdf_text(data: bytes, name: str = "document.pdf") -> str:
    """Extract plain text from PDF bytes.

    Args:
        data: Raw PDF bytes
        name: Name handed to Docling for format detection and logging

    Returns:
        Document text exported as markdown

    Raises:
        ExtractionError: If the bytes are not a readable PDF or hold no text
    """
    if not data:
        raise ExtractionError(f"PDF text extraction failed for {name}: empty payload.")
    if not name.lower().endswith(".pdf"):
        name = f"{name}.pdf"

    try:
        result = _convert(data, name)
        text = result.document.export_to_markdown()
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(f"PDF text extraction failed for {name}: {exc}") from exc

    if not text or not text.strip():
        raise ExtractionError(f"PDF text extraction failed for {name}: no text found.")

    logger.debug("Extracted %d characters from %s", len(text), name)
    return text
