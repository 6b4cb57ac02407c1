from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class JsonSchemaDefinition(BaseModel):
    name: str
    strict: bool = False
    schema_: dict[str, Any] = Field(alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class JsonSchemaFormat(BaseModel):
    """Ask the model to answer with JSON conforming to a schema."""

    type: Literal["json_schema"] = "json_schema"
    json_schema: JsonSchemaDefinition


class TextFormat(BaseModel):
    """Free-text answer; the prompt alone asks for JSON."""

    type: Literal["text"] = "text"


ResponseFormat = Annotated[Union[JsonSchemaFormat, TextFormat], Field(discriminator="type")]


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class StructuringRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    response_format: ResponseFormat
