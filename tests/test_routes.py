"""Tests for the HTTP surface."""
from unittest.mock import patch

import httpx
import pytest

from finbot.assistant.service import ConversationService
from finbot.assistant.tools import dispatch_tool
from finbot.llm.fallback import FallbackCascade
from finbot.main import app

from fakes import FakeProvider, provider_factory, text_response


@pytest.fixture
def primary():
    return FakeProvider([text_response("Hello from the model")])


@pytest.fixture
def service(store, reporter, primary):
    cascade = FallbackCascade(
        primary_provider="primary",
        primary_model="model-a",
        error_reporter=reporter,
        provider_factory=provider_factory(primary=primary),
    )
    service = ConversationService(store, cascade=cascade, error_reporter=reporter, quiet_seconds=0.01)
    with patch("finbot.assistant.routes.get_conversation_service", return_value=service):
        yield service


@pytest.fixture
async def client(service, store):
    transport = httpx.ASGITransport(app=app)
    with patch("finbot.ledger.routes.LedgerStore", return_value=store):
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


class TestThreadRoutes:

    @pytest.mark.asyncio
    async def test_create_and_chat(self, client):
        response = await client.post("/api/threads", json={"user_id": "user_1", "assistant_type": "finance"})
        assert response.status_code == 200
        thread = response.json()
        assert thread["assistant_type"] == "finance"

        response = await client.post(
            f"/api/threads/{thread['thread_id']}/turns",
            json={"parts": [{"type": "text", "text": "hi"}]},
        )
        assert response.status_code == 200
        assert response.json() == {"reply": "Hello from the model", "buffered": False}

        response = await client.get(f"/api/threads/{thread['thread_id']}/messages")
        assert [m["role"] for m in response.json()] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_patch_thread(self, client):
        thread = (await client.post("/api/threads", json={"user_id": "user_1"})).json()

        response = await client.patch(f"/api/threads/{thread['thread_id']}", json={"web_search": True})

        assert response.status_code == 200
        assert response.json()["web_search_enabled"] is True

    @pytest.mark.asyncio
    async def test_unknown_thread_is_404(self, client):
        response = await client.post("/api/threads/thread_missing/turns", json={"parts": [{"type": "text", "text": "x"}]})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_turn_rejected(self, client):
        response = await client.post("/api/threads/thread_1/turns", json={"parts": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_tool_parts_rejected_as_user_input(self, client, service, primary):
        thread = (await client.post("/api/threads", json={"user_id": "user_1"})).json()

        response = await client.post(
            f"/api/threads/{thread['thread_id']}/turns",
            json={"parts": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "done"}]},
        )

        assert response.status_code == 422
        assert primary.calls == 0
        assert await service.load_messages(thread["thread_id"]) == []


class TestBudgetRoutes:

    @pytest.mark.asyncio
    async def test_daily_budget(self, client, store):
        await dispatch_tool(
            store, "user_1", "createBudget",
            {"totalAmount": 100, "currency": "USD", "startDate": "01.03.2025", "endDate": "07.03.2025"},
        )

        response = await client.get("/api/budgets/daily", params={"user_id": "user_1", "date": "2025-03-03"})

        assert response.status_code == 200
        budget = response.json()["budgets"][0]
        assert budget["in_period"] is True
        assert budget["date"] == "03.03.2025"
        assert float(budget["allocation"]) == 42.86

    @pytest.mark.asyncio
    async def test_invalid_date(self, client):
        response = await client.get("/api/budgets/daily", params={"user_id": "user_1", "date": "March 3"})
        assert response.status_code == 400


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy"}
