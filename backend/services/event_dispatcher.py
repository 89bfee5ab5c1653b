"""Fan-out of webhook events into independent handler tasks."""
import asyncio
import logging
from collections import OrderedDict
from typing import List, Optional, Set

from models.events import WebhookEvent, WebhookPayload
from models.outcome import HandlingResult
from services.conversation_handler import ConversationHandler

logger = logging.getLogger(__name__)


def is_text_message(event: WebhookEvent) -> bool:
    """True for a message event carrying text from an identifiable user."""
    return (
        event.type == "message"
        and event.message is not None
        and event.message.type == "text"
        and bool(event.message.text)
        and event.source is not None
        and bool(event.source.user_id)
    )


class EventDispatcher:
    """
    Spawns one task per text message event and returns without awaiting them.

    LINE expects the webhook to answer quickly and redelivers otherwise, so
    dispatch() never waits on completion or push calls. Redelivered events are
    recognised by webhookEventId within a bounded window.
    """

    def __init__(self, handler: ConversationHandler, dedupe_window: int = 1024):
        self.handler = handler
        self.dedupe_window = dedupe_window
        self._seen_event_ids: "OrderedDict[str, None]" = OrderedDict()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, payload: WebhookPayload) -> List[asyncio.Task]:
        """Schedule handling for every qualifying event in the payload."""
        tasks = []
        for event in payload.events:
            if not is_text_message(event):
                logger.debug(f"Ignoring {event.type} event")
                continue
            if self._is_duplicate(event):
                logger.info(
                    f"Skipping already dispatched event {event.webhook_event_id}",
                    extra={"redelivery": event.is_redelivery}
                )
                continue

            task = asyncio.create_task(
                self._run(event.source.user_id, event.message.text)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)

        if tasks:
            logger.info(f"Dispatched {len(tasks)} of {len(payload.events)} events")
        return tasks

    async def drain(self) -> None:
        """Wait for every in-flight handler task."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, user_id: str, text: str) -> Optional[HandlingResult]:
        try:
            return await self.handler.handle(user_id, text)
        except Exception:
            # handle() records its own failures; this only catches bugs
            logger.exception(f"Unhandled error while processing message from {user_id}")
            return None

    def _is_duplicate(self, event: WebhookEvent) -> bool:
        event_id = event.webhook_event_id
        if not event_id:
            return False
        if event_id in self._seen_event_ids:
            return True

        self._seen_event_ids[event_id] = None
        if len(self._seen_event_ids) > self.dedupe_window:
            self._seen_event_ids.popitem(last=False)
        return False
