import unittest

import httpx
from openai import APIConnectionError

from fakes import TEST_SCHEMA, make_openai_client
from resume_ingest.core.config import DEFAULT_SCHEMA_PATH
from resume_ingest.core.errors import (
    EmptyCandidatesError,
    InvalidStructuredContentError,
    StructuringError,
    StructuringRequestError,
)
from resume_ingest.models.structuring import JsonSchemaFormat, TextFormat
from resume_ingest.services import structurer
from resume_ingest.services.structurer import StructuringClient


class TestBuildRequest(unittest.TestCase):
    def test_schema_mode_payload(self) -> None:
        fmt = structurer.build_response_format(TEST_SCHEMA)
        request = structurer.build_request("resume text", "gpt-5-nano", fmt)
        payload = request.model_dump(by_alias=True)

        self.assertIsInstance(fmt, JsonSchemaFormat)
        self.assertEqual(payload["model"], "gpt-5-nano")
        self.assertEqual(
            [m["role"] for m in payload["messages"]], ["system", "user"]
        )
        self.assertEqual(payload["messages"][1]["content"], "resume text")
        self.assertEqual(payload["response_format"]["type"], "json_schema")
        json_schema = payload["response_format"]["json_schema"]
        self.assertEqual(json_schema["name"], "resume_data_structuring")
        self.assertFalse(json_schema["strict"])
        self.assertEqual(json_schema["schema"], TEST_SCHEMA)

    def test_text_mode_payload(self) -> None:
        fmt = structurer.build_response_format(None)
        request = structurer.build_request("resume text", "gpt-5-nano", fmt)
        payload = request.model_dump(by_alias=True)

        self.assertIsInstance(fmt, TextFormat)
        self.assertEqual(payload["response_format"], {"type": "text"})
        self.assertIn("JSON", payload["messages"][0]["content"])

    def test_unknown_format_rejected(self) -> None:
        with self.assertRaises(TypeError):
            structurer.build_request("text", "model", {"type": "yaml"})  # type: ignore[arg-type]

    def test_bundled_resume_schema_loads(self) -> None:
        schema = structurer.load_schema(DEFAULT_SCHEMA_PATH)
        self.assertEqual(schema["type"], "object")
        self.assertIn("experience", schema["properties"])

    def test_load_schema_rejects_missing_file(self) -> None:
        with self.assertRaises(ValueError):
            structurer.load_schema("/nonexistent/schema.json")


class TestStructuringClient(unittest.IsolatedAsyncioTestCase):
    async def test_returns_parsed_candidate(self) -> None:
        client = make_openai_client('{"name": "John Doe", "years_experience": 5}')
        result = await StructuringClient(client=client).structure("John Doe", TEST_SCHEMA)

        self.assertEqual(result, {"name": "John Doe", "years_experience": 5})
        client.chat.completions.create.assert_awaited_once()
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["response_format"]["json_schema"]["schema"], TEST_SCHEMA)

    async def test_no_candidates(self) -> None:
        client = make_openai_client(empty=True)
        with self.assertRaises(EmptyCandidatesError):
            await StructuringClient(client=client).structure("text", TEST_SCHEMA)

    async def test_invalid_json_content(self) -> None:
        client = make_openai_client("Sure! Here is the resume: {name: John")
        with self.assertRaises(InvalidStructuredContentError) as ctx:
            await StructuringClient(client=client).structure("text", TEST_SCHEMA)
        self.assertIsInstance(ctx.exception, StructuringError)

    async def test_non_object_json_content(self) -> None:
        client = make_openai_client("[1, 2, 3]")
        with self.assertRaises(InvalidStructuredContentError):
            await StructuringClient(client=client).structure("text", TEST_SCHEMA)

    async def test_api_failure_is_not_retried(self) -> None:
        client = make_openai_client()
        client.chat.completions.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )

        with self.assertRaises(StructuringRequestError):
            await StructuringClient(client=client).structure("text", TEST_SCHEMA)
        self.assertEqual(client.chat.completions.create.await_count, 1)


if __name__ == "__main__":
    unittest.main()
