"""
LINE Messaging API transport.

Push delivery of text replies and X-Line-Signature verification.
No retries: a failed push is reported to the caller and dropped.
"""
import base64
import hashlib
import hmac
import logging
import uuid
from typing import Optional

import httpx
from fastapi import HTTPException, Request, status

from config import LINE_API_BASE, LINE_CHANNEL_ACCESS_TOKEN, LINE_CHANNEL_SECRET

logger = logging.getLogger(__name__)

PUSH_PATH = "/v2/bot/message/push"
MAX_TEXT_LENGTH = 5000


class LineDeliveryError(Exception):
    """Push message was not accepted by LINE."""


class LineMessagingClient:
    """Thin async wrapper around the LINE push endpoint."""

    def __init__(
        self,
        channel_access_token: Optional[str] = None,
        api_base: str = LINE_API_BASE,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.channel_access_token = channel_access_token or LINE_CHANNEL_ACCESS_TOKEN
        self.http_client = http_client or httpx.AsyncClient(base_url=api_base, timeout=timeout)
        if not self.enabled:
            logger.warning("LINE_CHANNEL_ACCESS_TOKEN not set, pushes will only be logged")

    @property
    def enabled(self) -> bool:
        return bool(self.channel_access_token)

    async def push_text(self, user_id: str, text: str) -> None:
        """
        Push a single text message to a user.

        Raises:
            LineDeliveryError: transport failure or non-2xx response
        """
        if len(text) > MAX_TEXT_LENGTH:
            logger.warning(f"Reply for {user_id} truncated from {len(text)} characters")
            text = text[:MAX_TEXT_LENGTH]

        payload = {"to": user_id, "messages": [{"type": "text", "text": text}]}

        if not self.enabled:
            logger.info("[dry-run] push %s", payload)
            return

        headers = {
            "Authorization": f"Bearer {self.channel_access_token}",
            "X-Line-Retry-Key": str(uuid.uuid4()),
        }

        try:
            response = await self.http_client.post(PUSH_PATH, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Push request to {user_id} failed: {e}", exc_info=True)
            raise LineDeliveryError(f"HTTP request failed: {e}") from e

        if response.is_error:
            logger.error(
                f"LINE API error: {response.status_code} - {response.text}",
                extra={"user_id": user_id, "status_code": response.status_code}
            )
            raise LineDeliveryError(f"LINE API returned {response.status_code}")

        logger.info(f"Pushed reply to {user_id}")

    async def aclose(self) -> None:
        await self.http_client.aclose()


def compute_signature(channel_secret: str, body: bytes) -> str:
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(
    body: bytes,
    signature: Optional[str],
    channel_secret: Optional[str] = None,
) -> None:
    """
    Check X-Line-Signature against the raw request body.

    Raises:
        HTTPException(401): Missing signature
        HTTPException(403): Signature does not match
        HTTPException(500): Channel secret not configured
    """
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Line-Signature header"
        )

    channel_secret = channel_secret or LINE_CHANNEL_SECRET
    if not channel_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="LINE_CHANNEL_SECRET not configured"
        )

    expected = compute_signature(channel_secret, body)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid signature"
        )


async def verified_body(request: Request) -> bytes:
    """FastAPI dependency returning the raw body once its signature checks out."""
    body = await request.body()
    verify_signature(
        body,
        request.headers.get("X-Line-Signature"),
        getattr(request.app.state, "channel_secret", None),
    )
    return body
