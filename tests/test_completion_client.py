"""
Gemini client tests against a mocked HTTP transport.
"""

import json

import httpx
import pytest

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.models.admin import ApiKey
from app.services.completion.client import GeminiClient, resolve_api_key
from app.services.completion.prompts import build_generation_prompt


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestGeminiClient:

    @pytest.mark.asyncio
    async def test_generate_posts_prompt_and_returns_text(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json=gemini_reply("def add(a, b):\n    return a + b"))

        client = GeminiClient("secret-key", transport=httpx.MockTransport(handler))
        code = await client.generate("Write an add function")

        assert code == "def add(a, b):\n    return a + b"

        request = captured["request"]
        assert request.method == "POST"
        assert request.url.path.endswith(f"/models/{settings.GEMINI_MODEL}:generateContent")
        assert request.url.params["key"] == "secret-key"

        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "Write an add function"
        assert body["generationConfig"]["maxOutputTokens"] == settings.GEMINI_MAX_OUTPUT_TOKENS
        assert body["generationConfig"]["topK"] == settings.GEMINI_TOP_K
        assert {s["category"] for s in body["safetySettings"]} == {
            "HARM_CATEGORY_HARASSMENT",
            "HARM_CATEGORY_HATE_SPEECH",
        }

    @pytest.mark.asyncio
    async def test_non_200_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        client = GeminiClient("k", transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate("prompt")
        assert "500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_candidates_raise(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        client = GeminiClient("k", transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.message == "No code generated"

    @pytest.mark.asyncio
    async def test_blank_text_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=gemini_reply("   ")))
        client = GeminiClient("k", transport=transport)

        with pytest.raises(ProviderError):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GeminiClient("k", transport=httpx.MockTransport(handler))

        with pytest.raises(ProviderError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.code == "ProviderError"


class TestResolveApiKey:

    @pytest.mark.asyncio
    async def test_stored_key_wins(self, db):
        db.add(ApiKey(key_name="GEMINI_API_KEY", key_value="rotated-key"))
        await db.commit()

        assert await resolve_api_key(db) == "rotated-key"

    @pytest.mark.asyncio
    async def test_falls_back_to_settings(self, db, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", "env-key")
        assert await resolve_api_key(db) == "env-key"

    @pytest.mark.asyncio
    async def test_missing_key(self, db, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", None)

        with pytest.raises(ProviderError) as exc_info:
            await resolve_api_key(db)
        assert exc_info.value.message == "Gemini API key not configured. Please contact administrator."


class TestPrompt:

    def test_prompt_mentions_options(self):
        prompt = build_generation_prompt(
            "Parse a CSV file", "Python", "advanced",
            include_tests=True, include_comments=True, framework="pandas"
        )
        assert "Parse a CSV file" in prompt
        assert "Python" in prompt
        assert "pandas" in prompt
