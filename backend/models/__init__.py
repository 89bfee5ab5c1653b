"""Data models for the AI-kun Fudosan LINE bot."""
from .conversation import Turn, ChatMessage, build_context
from .events import WebhookPayload, WebhookEvent, EventSource, EventMessage, DeliveryContext
from .outcome import HandlingResult, Outcome, FailureKind

__all__ = [
    "Turn",
    "ChatMessage",
    "build_context",
    "WebhookPayload",
    "WebhookEvent",
    "EventSource",
    "EventMessage",
    "DeliveryContext",
    "HandlingResult",
    "Outcome",
    "FailureKind",
]
