"""Resume structuring through the OpenAI chat completions API."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from openai import APIError, AsyncOpenAI

from resume_ingest.core.errors import (
    EmptyCandidatesError,
    InvalidStructuredContentError,
    StructuringRequestError,
)
from resume_ingest.core.logging import get_logger
from resume_ingest.models.structuring import (
    ChatMessage,
    JsonSchemaDefinition,
    JsonSchemaFormat,
    ResponseFormat,
    StructuringRequest,
    TextFormat,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a resume conversion assistant. Extract information from the user's "
    "resume text and format it into the given structure."
)
TEXT_MODE_SUFFIX = " Respond with a single JSON object and nothing else."
SCHEMA_NAME = "resume_data_structuring"


def load_schema(path: str | Path) -> dict[str, Any]:
    """Read a JSON schema file. Raises ValueError on unreadable or invalid files."""
    try:
        schema = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Invalid JSON schema file {path}: {exc}") from exc
    if not isinstance(schema, dict):
        raise ValueError(f"JSON schema in {path} must be an object.")
    return schema


def build_response_format(schema: dict[str, Any] | None) -> ResponseFormat:
    if schema is None:
        return TextFormat()
    return JsonSchemaFormat(
        json_schema=JsonSchemaDefinition(name=SCHEMA_NAME, strict=False, schema=schema)
    )


def build_request(text: str, model: str, response_format: ResponseFormat) -> StructuringRequest:
    if isinstance(response_format, JsonSchemaFormat):
        system_prompt = SYSTEM_PROMPT
    elif isinstance(response_format, TextFormat):
        system_prompt = SYSTEM_PROMPT + TEXT_MODE_SUFFIX
    else:
        raise TypeError(f"Unknown response format: {type(response_format).__name__}")

    return StructuringRequest(
        model=model,
        messages=[
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=text),
        ],
        response_format=response_format,
    )


def parse_candidate(response: Any) -> dict[str, Any]:
    """Pull the first candidate out of a chat completion and decode it as JSON."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise EmptyCandidatesError("Structuring failed: no candidates returned.")

    message = getattr(choices[0], "message", None)
    raw_content = getattr(message, "content", None) or ""
    try:
        parsed = json.loads(raw_content)
    except json.JSONDecodeError as exc:
        logger.debug("Raw structuring content: %s", raw_content)
        raise InvalidStructuredContentError(
            f"Structuring failed: candidate content is not valid JSON ({exc})."
        ) from exc
    if not isinstance(parsed, dict):
        raise InvalidStructuredContentError(
            "Structuring failed: candidate content is not a JSON object."
        )
    return parsed


class StructuringClient:
    """One-shot text → JSON structuring call. Never retries."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-5-nano",
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        # max_retries=0: a transient failure is terminal for the job.
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)

    async def structure(self, text: str, schema: dict[str, Any] | None) -> dict[str, Any]:
        """Convert free text into a JSON document.

        Args:
            text: Extracted document text
            schema: JSON schema for schema mode, or None for free-text mode

        Returns:
            Parsed JSON object from the first candidate

        Raises:
            StructuringRequestError: If the API call fails
            EmptyCandidatesError: If no candidate is returned
            InvalidStructuredContentError: If the candidate is not valid JSON
        """
        request = build_request(text, self.model, build_response_format(schema))
        payload = request.model_dump(by_alias=True)

        try:
            response = await self._client.chat.completions.create(**payload)
        except APIError as exc:
            raise StructuringRequestError(f"Structuring failed: request error - {exc}") from exc

        return parse_candidate(response)

    async def aclose(self) -> None:
        await self._client.close()
