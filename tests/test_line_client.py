"""
LINE transport tests.

Push delivery against httpx.MockTransport and X-Line-Signature checks.
"""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import base64
import hashlib
import hmac
import json

import httpx
import pytest
from fastapi import HTTPException

from services.line_client import (
    LineDeliveryError,
    LineMessagingClient,
    MAX_TEXT_LENGTH,
    compute_signature,
    verify_signature,
)


def make_client(handler, token="token-123"):
    http_client = httpx.AsyncClient(
        base_url="https://api.line.me",
        transport=httpx.MockTransport(handler),
    )
    return LineMessagingClient(channel_access_token=token, http_client=http_client)


class TestPushText:
    """Test push delivery."""

    @pytest.mark.asyncio
    async def test_push_sends_single_text_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        client = make_client(handler)
        await client.push_text("U123", "こんにちは")

        assert len(requests) == 1
        request = requests[0]
        assert request.url.path == "/v2/bot/message/push"
        assert request.headers["Authorization"] == "Bearer token-123"
        assert request.headers["X-Line-Retry-Key"]
        assert json.loads(request.content) == {
            "to": "U123",
            "messages": [{"type": "text", "text": "こんにちは"}],
        }

    @pytest.mark.asyncio
    async def test_long_text_is_truncated(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={})

        client = make_client(handler)
        await client.push_text("U123", "a" * (MAX_TEXT_LENGTH + 10))

        assert len(bodies[0]["messages"][0]["text"]) == MAX_TEXT_LENGTH

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Non-2xx responses are delivery errors."""
        client = make_client(lambda request: httpx.Response(400, json={"message": "Invalid to"}))

        with pytest.raises(LineDeliveryError, match="400"):
            await client.push_text("bad-user", "hello")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(LineDeliveryError, match="HTTP request failed"):
            await client.push_text("U123", "hello")

    @pytest.mark.asyncio
    async def test_dry_run_without_token(self):
        """Without an access token nothing is sent."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        client = make_client(handler, token=None)
        client.channel_access_token = None

        await client.push_text("U123", "hello")

        assert not client.enabled
        assert requests == []


class TestSignatureVerification:
    """Test X-Line-Signature validation."""

    def test_compute_signature_matches_line_algorithm(self):
        body = b'{"events":[]}'
        expected = base64.b64encode(
            hmac.new(b"secret", body, hashlib.sha256).digest()
        ).decode()

        assert compute_signature("secret", body) == expected

    def test_valid_signature_passes(self):
        body = b'{"events":[]}'
        # Should not raise
        verify_signature(body, compute_signature("secret", body), "secret")

    def test_missing_signature_returns_401(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_signature(b"{}", None, "secret")

        assert exc_info.value.status_code == 401

    def test_invalid_signature_returns_403(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_signature(b"{}", compute_signature("other-secret", b"{}"), "secret")

        assert exc_info.value.status_code == 403

    def test_tampered_body_returns_403(self):
        signature = compute_signature("secret", b'{"events":[]}')

        with pytest.raises(HTTPException) as exc_info:
            verify_signature(b'{"events":[{}]}', signature, "secret")

        assert exc_info.value.status_code == 403

    def test_missing_secret_returns_500(self, monkeypatch):
        monkeypatch.setattr("services.line_client.LINE_CHANNEL_SECRET", None)

        with pytest.raises(HTTPException) as exc_info:
            verify_signature(b"{}", "sig", None)

        assert exc_info.value.status_code == 500

    def test_non_ascii_signature_returns_403(self):
        """A header that decodes to non-ASCII text is a mismatch, not a crash."""
        with pytest.raises(HTTPException) as exc_info:
            verify_signature(b"{}", "café", "secret")

        assert exc_info.value.status_code == 403
