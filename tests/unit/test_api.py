"""HTTP tests for the FastAPI app, run in-process against the mock LLM provider."""

import httpx
import pytest

from mortgagemate.factory import create_app
from mortgagemate.services.llm import MOCK_GATHERING_REPLY

HEADERS = {"X-User-Id": "42"}


@pytest.fixture
async def client(db):
    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ===================================================================
# Health and auth
# ===================================================================


class TestHealthAndAuth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "mortgagemate"}

    async def test_missing_user_header(self, client):
        resp = await client.post("/v1/chat", json={"message": "hello"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    async def test_bad_user_header(self, client, value):
        resp = await client.get("/v1/chats", headers={"X-User-Id": value})
        assert resp.status_code == 401


# ===================================================================
# POST /v1/chat
# ===================================================================


class TestChatEndpoint:
    async def test_first_turn(self, client):
        resp = await client.post("/v1/chat", json={"message": "I want to remortgage"}, headers=HEADERS)
        assert resp.status_code == 200
        body = resp.json()
        assert body["content"] == MOCK_GATHERING_REPLY["response"]
        assert body["mode"] == "data_gathering"
        assert body["numerical_id"] == 1
        assert body["completeness_score"] == 0
        assert len(body["missing_fields"]) == 7
        assert body["is_analysis"] is False

    async def test_documents_attached(self, client):
        resp = await client.post(
            "/v1/chat",
            json={
                "message": "Here is my statement",
                "documents": [{"summary": "statement.pdf: Halifax", "fields": {"currentLender": "Halifax"}}],
            },
            headers=HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["fields"]["currentLender"] == "Halifax"

    async def test_empty_message_is_422(self, client):
        resp = await client.post("/v1/chat", json={"message": "  "}, headers=HEADERS)
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    async def test_unknown_chat_is_404(self, client):
        resp = await client.post(
            "/v1/chat", json={"message": "hi", "chat_id": "nope"}, headers=HEADERS
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "NotFoundError", "detail": "Chat nope not found"}


# ===================================================================
# /v1/chats
# ===================================================================


class TestChatsEndpoints:
    async def test_lifecycle(self, client):
        created = await client.post("/v1/chats", json={"title": "Remortgage 2025"}, headers=HEADERS)
        assert created.status_code == 201
        chat_id = created.json()["chat_id"]

        turn = await client.post(
            "/v1/chat", json={"message": "It's a flat in York", "chat_id": chat_id}, headers=HEADERS
        )
        assert turn.status_code == 200

        listed = (await client.get("/v1/chats", headers=HEADERS)).json()
        assert [c["title"] for c in listed] == ["Remortgage 2025"]

        latest = (await client.get("/v1/chats/latest", headers=HEADERS)).json()
        assert latest["chat_id"] == chat_id

        detail = (await client.get("/v1/chats/1", headers=HEADERS)).json()
        assert detail["history"] == [
            "User: It's a flat in York",
            f"AI: {MOCK_GATHERING_REPLY['response']}",
        ]
        assert detail["mode"] == "data_gathering"

        renamed = await client.put("/v1/chats/1/title", json={"title": "York flat"}, headers=HEADERS)
        assert renamed.json()["title"] == "York flat"

        deleted = await client.delete(f"/v1/chats/{chat_id}", headers=HEADERS)
        assert deleted.json() == {"deleted": True}
        assert (await client.get("/v1/chats", headers=HEADERS)).json() == []
        assert (await client.delete(f"/v1/chats/{chat_id}", headers=HEADERS)).status_code == 404

    async def test_latest_when_none(self, client):
        resp = await client.get("/v1/chats/latest", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json() is None

    async def test_other_users_chat_hidden(self, client):
        await client.post("/v1/chats", json={}, headers=HEADERS)
        resp = await client.get("/v1/chats/1", headers={"X-User-Id": "7"})
        assert resp.status_code == 404

    async def test_blank_title_rejected(self, client):
        await client.post("/v1/chats", json={}, headers=HEADERS)
        resp = await client.put("/v1/chats/1/title", json={"title": " "}, headers=HEADERS)
        assert resp.status_code == 422


# ===================================================================
# /v1/documents/parse
# ===================================================================


class TestDocumentsEndpoint:
    async def test_parse_text_file(self, client):
        resp = await client.post(
            "/v1/documents/parse",
            files={"file": ("statement.txt", b"Balance: 200,000", "text/plain")},
            data={"document_type": "mortgage_statement"},
            headers=HEADERS,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["filename"] == "statement.txt"
        assert body["summary"].startswith("statement.txt (mortgage_statement): ")

    async def test_unsupported_file(self, client):
        resp = await client.post(
            "/v1/documents/parse",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
            headers=HEADERS,
        )
        assert resp.status_code == 422
