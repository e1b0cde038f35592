import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai

from translator.exceptions import RateLimited, TransportFailure
from translator.provider import OpenAICompatibleProvider

REQUEST = httpx.Request("POST", "https://example.invalid/v1/chat/completions")


def completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=None,
    )


class TestOpenAICompatibleProvider(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.provider = OpenAICompatibleProvider(
            "gemini-2.5-flash", api_key="test-key", base_url="https://example.invalid/v1/"
        )
        self.provider.client = MagicMock()

    def fail_with(self, error):
        self.provider.client.chat.completions.create = AsyncMock(side_effect=error)

    async def test_returns_stripped_content(self):
        self.provider.client.chat.completions.create = AsyncMock(
            return_value=completion('  {"translations": []}\n')
        )
        text = await self.provider.translate_batch("prompt")
        self.assertEqual(text, '{"translations": []}')

        kwargs = self.provider.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-2.5-flash")
        self.assertEqual(kwargs["temperature"], 0.3)
        self.assertEqual(kwargs["messages"][-1], {"role": "user", "content": "prompt"})

    async def test_missing_content(self):
        self.provider.client.chat.completions.create = AsyncMock(
            return_value=completion(None)
        )
        self.assertEqual(await self.provider.translate_batch("prompt"), "")

    async def test_rate_limit_maps_to_rate_limited(self):
        self.fail_with(
            openai.RateLimitError(
                "quota exceeded", response=httpx.Response(429, request=REQUEST), body=None
            )
        )
        with self.assertRaises(RateLimited):
            await self.provider.translate_batch("prompt")

    async def test_server_error_maps_to_transport_failure(self):
        self.fail_with(
            openai.InternalServerError(
                "boom", response=httpx.Response(500, request=REQUEST), body=None
            )
        )
        with self.assertRaises(TransportFailure) as ctx:
            await self.provider.translate_batch("prompt")
        self.assertEqual(ctx.exception.details["status_code"], 500)

    async def test_connection_error_maps_to_transport_failure(self):
        self.fail_with(openai.APIConnectionError(request=REQUEST))
        with self.assertRaises(TransportFailure) as ctx:
            await self.provider.translate_batch("prompt")
        self.assertEqual(ctx.exception.code, "transport_error")


if __name__ == "__main__":
    unittest.main()
