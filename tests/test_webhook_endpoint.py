"""Integration tests for the HTTP surface (GET /, POST /callback)."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock

from main import create_app
from services.conversation_handler import ConversationHandler
from services.event_dispatcher import EventDispatcher
from services.history_store import HistoryStoreError
from services.line_client import LineDeliveryError, compute_signature
from services.llm_client import LLMClientError, LLMError

SECRET = "channel-secret"


def text_event(user_id, text):
    return {
        "type": "message",
        "source": {"type": "user", "userId": user_id},
        "message": {"id": "1", "type": "text", "text": text},
    }


def signed_post(client, body):
    raw = json.dumps(body).encode("utf-8")
    return client.post(
        "/callback",
        content=raw,
        headers={"Content-Type": "application/json", "X-Line-Signature": compute_signature(SECRET, raw)},
    )


@pytest.fixture
def dispatcher():
    dispatcher = Mock()
    dispatcher.dispatch.return_value = []
    dispatcher.in_flight = 0
    dispatcher.drain = AsyncMock()
    return dispatcher


@pytest.fixture
def client(dispatcher):
    with TestClient(create_app(dispatcher=dispatcher, channel_secret=SECRET)) as client:
        yield client


class TestHealth:
    """Test suite for health endpoints."""

    def test_root_returns_plain_text(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.endswith("Running")

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCallback:
    """Test suite for POST /callback."""

    def test_acknowledges_with_empty_body(self, client, dispatcher):
        response = signed_post(client, {"destination": "Ubot", "events": [text_event("U1", "hi")]})

        assert response.status_code == 200
        assert response.content == b""
        dispatcher.dispatch.assert_called_once()
        payload = dispatcher.dispatch.call_args.args[0]
        assert payload.events[0].source.user_id == "U1"
        assert payload.events[0].message.text == "hi"

    def test_verification_request_with_no_events(self, client, dispatcher):
        response = signed_post(client, {"destination": "Ubot", "events": []})

        assert response.status_code == 200
        assert dispatcher.dispatch.call_args.args[0].events == []

    def test_missing_signature_rejected(self, client, dispatcher):
        response = client.post("/callback", json={"events": []})

        assert response.status_code == 401
        dispatcher.dispatch.assert_not_called()

    def test_bad_signature_rejected(self, client, dispatcher):
        response = client.post(
            "/callback",
            content=b'{"events": []}',
            headers={"X-Line-Signature": compute_signature("wrong", b'{"events": []}')},
        )

        assert response.status_code == 403
        dispatcher.dispatch.assert_not_called()

    def test_non_ascii_signature_rejected(self, client, dispatcher):
        response = client.post(
            "/callback",
            content=b'{"events": []}',
            headers={"X-Line-Signature": b"caf\xe9"},
        )

        assert response.status_code == 403
        dispatcher.dispatch.assert_not_called()

    def test_malformed_payload_rejected(self, client, dispatcher):
        raw = b'{"events": "not-a-list"}'
        response = client.post(
            "/callback",
            content=raw,
            headers={"X-Line-Signature": compute_signature(SECRET, raw)},
        )

        assert response.status_code == 400
        dispatcher.dispatch.assert_not_called()


class TestAcknowledgementUnderFailure:
    """The webhook answers 200 even when every collaborator fails."""

    def test_all_collaborators_failing(self):
        history_store = Mock()
        history_store.get_recent_turns = AsyncMock(side_effect=HistoryStoreError("down"))
        history_store.insert_turn = AsyncMock(side_effect=HistoryStoreError("down"))

        release = asyncio.Event()

        async def failing_generate(messages):
            await release.wait()
            raise LLMClientError(LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={}))

        llm_client = Mock()
        llm_client.generate = AsyncMock(side_effect=failing_generate)
        reply_sender = Mock()
        reply_sender.push_text = AsyncMock(side_effect=LineDeliveryError("down"))

        handler = ConversationHandler(history_store, llm_client, reply_sender, "persona", "sorry")
        app = create_app(dispatcher=EventDispatcher(handler), channel_secret=SECRET)

        with TestClient(app) as client:
            response = signed_post(client, {"events": [
                text_event("U1", "one"),
                text_event("U2", "two"),
                text_event("U3", "three"),
            ]})

            assert response.status_code == 200
            assert response.content == b""
            # Per-event work is still in flight when the response arrives
            reply_sender.push_text.assert_not_awaited()

            # Runs in the event loop thread that owns the handler tasks
            client.portal.call(release.set)

        # Leaving the client runs shutdown, which drains the dispatcher
        assert llm_client.generate.await_count == 3
        assert reply_sender.push_text.await_count == 3
        history_store.insert_turn.assert_not_awaited()
