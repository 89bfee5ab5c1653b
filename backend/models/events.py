"""LINE webhook payload models.

Only the fields the bot reads are declared; everything else LINE sends
(replyToken, mode, emojis, ...) is accepted and ignored.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventSource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    user_id: Optional[str] = Field(default=None, alias="userId")


class EventMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str
    text: Optional[str] = None


class DeliveryContext(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    is_redelivery: bool = Field(default=False, alias="isRedelivery")


class WebhookEvent(BaseModel):
    """One event inside a webhook call."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    timestamp: Optional[int] = None
    source: Optional[EventSource] = None
    message: Optional[EventMessage] = None
    webhook_event_id: Optional[str] = Field(default=None, alias="webhookEventId")
    delivery_context: Optional[DeliveryContext] = Field(default=None, alias="deliveryContext")

    @property
    def is_redelivery(self) -> bool:
        return bool(self.delivery_context and self.delivery_context.is_redelivery)


class WebhookPayload(BaseModel):
    """Body of POST /callback."""
    model_config = ConfigDict(extra="allow")

    destination: Optional[str] = None
    events: List[WebhookEvent] = Field(default_factory=list)
