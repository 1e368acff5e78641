"""Unit tests for mortgagemate.services.llm — structured replies, retries, logging."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select

from mortgagemate.core.errors import CollaboratorError
from mortgagemate.models.llm_call import STATUS_COMPLETED, STATUS_FAILED, LLMRequest, LLMResponse
from mortgagemate.services import llm


# ===================================================================
# parse_structured_reply
# ===================================================================


class TestParseStructuredReply:
    def test_plain_json(self):
        raw = json.dumps({
            "response": "Thanks! What's your balance?",
            "extractedData": {"propertyValue": "£450,000", "propertyLocation": "Bristol"},
            "proceedWithAnalysis": False,
        })
        text, fields, proceed = llm.parse_structured_reply(raw)
        assert text == "Thanks! What's your balance?"
        assert fields == {"property_location": "Bristol", "property_value": 450000}
        assert proceed is False

    def test_fenced_json_with_prose(self):
        raw = 'Here you go:\n```json\n{"response": "Got it", "proceedWithAnalysis": true}\n```'
        text, fields, proceed = llm.parse_structured_reply(raw)
        assert text == "Got it"
        assert fields == {}
        assert proceed is True

    def test_extracted_data_as_string(self):
        raw = json.dumps({
            "response": "Noted",
            "extractedData": json.dumps({"currentRate": "4.5%"}),
        })
        _, fields, _ = llm.parse_structured_reply(raw)
        assert fields == {"current_rate": 4.5}

    def test_unknown_keys_and_placeholders_dropped(self):
        raw = json.dumps({
            "response": "Ok",
            "extractedData": {"favouriteColour": "blue", "currentLender": "<UNKNOWN>"},
        })
        _, fields, _ = llm.parse_structured_reply(raw)
        assert fields == {}

    def test_not_json_passes_through(self):
        text, fields, proceed = llm.parse_structured_reply("  Just some words.  ")
        assert text == "Just some words."
        assert fields == {}
        assert proceed is False

    def test_truthy_string_is_not_consent(self):
        raw = json.dumps({"response": "Ok", "proceedWithAnalysis": "yes"})
        assert llm.parse_structured_reply(raw)[2] is False


# ===================================================================
# _retry_request
# ===================================================================


class TestRetryRequest:
    async def test_retries_on_503(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, json={"error": "busy"})
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with patch("mortgagemate.services.llm.asyncio.sleep", AsyncMock()) as sleep:
                resp = await llm._retry_request(client, "POST", "https://llm.test/chat/completions", json={})

        assert resp.json() == {"ok": True}
        assert len(calls) == 2
        sleep.assert_awaited_once()

    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": "bad request"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await llm._retry_request(client, "POST", "https://llm.test/chat/completions", json={})
        assert len(calls) == 1

    async def test_gives_up_after_max_retries(self):
        def handler(request):
            return httpx.Response(429, headers={"retry-after": "0"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with patch("mortgagemate.services.llm.asyncio.sleep", AsyncMock()):
                with pytest.raises(httpx.HTTPStatusError):
                    await llm._retry_request(client, "GET", "https://llm.test/models")


# ===================================================================
# chat
# ===================================================================


class TestChat:
    async def test_missing_api_key(self, monkeypatch):
        from mortgagemate.core.flags import get_flags

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("FF_LLM_PROVIDER", "openai")
        get_flags.cache_clear()
        with pytest.raises(ValueError, match="No API key"):
            await llm.chat([{"role": "user", "content": "hi"}])

    async def test_mock_provider_json_mode(self):
        data = await llm.chat([{"role": "user", "content": "hi"}], json_mode=True)
        content = json.loads(data["choices"][0]["message"]["content"])
        assert content["proceedWithAnalysis"] is False

    def test_fallback_needs_a_key(self, monkeypatch):
        from mortgagemate.core.config import get_settings

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        get_settings.cache_clear()
        assert llm._get_fallback_provider("gemini") is None
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        get_settings.cache_clear()
        assert llm._get_fallback_provider("gemini") == "openai"


# ===================================================================
# complete
# ===================================================================


class TestComplete:
    async def test_structured_mock_reply_is_logged(self, db):
        completion = await llm.complete(
            "prompt text", max_tokens=100, temperature=0.7,
            structured=True, purpose="data_gathering", user_id=42,
        )

        assert completion.text == llm.MOCK_GATHERING_REPLY["response"]
        assert completion.fields == {}
        assert completion.request_id is not None
        assert completion.response_id is not None

        request = await db.get(LLMRequest, completion.request_id)
        assert request.status == STATUS_COMPLETED
        assert request.purpose == "data_gathering"
        assert request.user_id == 42
        response = await db.get(LLMResponse, completion.response_id)
        assert response.request_id == request.id
        assert response.finish_reason == "stop"

    async def test_unstructured_mock_reply(self, db):
        completion = await llm.complete("prompt", max_tokens=100, temperature=0.3)
        assert completion.text == llm.MOCK_ANALYSIS_REPLY.strip()
        assert completion.proceed_with_analysis is False

    async def test_provider_failure_becomes_collaborator_error(self, db):
        failing = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("mortgagemate.services.llm.chat", failing):
            with pytest.raises(CollaboratorError):
                await llm.complete("prompt", max_tokens=100, temperature=0.7, purpose="data_gathering")

        rows = (await db.execute(select(LLMRequest))).scalars().all()
        assert [r.status for r in rows] == [STATUS_FAILED]
        assert "refused" in rows[0].error_message

    async def test_empty_reply_is_an_error(self, db):
        empty = AsyncMock(return_value={"choices": [{"message": {"content": ""}}]})
        with patch("mortgagemate.services.llm.chat", empty):
            with pytest.raises(CollaboratorError, match="empty"):
                await llm.complete("prompt", max_tokens=100, temperature=0.7)
