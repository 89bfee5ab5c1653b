"""Per-message orchestration: history -> completion -> (push, persist)."""
import asyncio
import logging
from typing import List

from models.conversation import Turn, build_context
from models.outcome import FailureKind, HandlingResult, Outcome
from services.history_store import HistoryStore
from services.line_client import LineMessagingClient
from services.llm_client import LLMClient, LLMClientError

logger = logging.getLogger(__name__)


class ConversationHandler:
    """
    Answers one user message.

    Every collaborator failure is terminal and local: it is logged, recorded
    on the returned HandlingResult and never raised to the caller.
    """

    def __init__(
        self,
        history_store: HistoryStore,
        llm_client: LLMClient,
        reply_sender: LineMessagingClient,
        system_prompt: str,
        fallback_text: str,
        history_limit: int = 10,
    ):
        self.history_store = history_store
        self.llm_client = llm_client
        self.reply_sender = reply_sender
        self.system_prompt = system_prompt
        self.fallback_text = fallback_text
        self.history_limit = history_limit

    async def handle(self, user_id: str, message_text: str) -> HandlingResult:
        """
        Reply to `message_text` from `user_id` and record the exchange.

        Returns:
            HandlingResult with outcome REPLIED when a completion was produced,
            FALLBACK when the apology text was used instead.
        """
        failures: List[FailureKind] = []

        turns = await self._load_history(user_id, failures)
        messages = build_context(self.system_prompt, turns, message_text)

        try:
            llm_response = await self.llm_client.generate(messages)
        except Exception as e:
            failures.append(FailureKind.GENERATION)
            code = e.error.code if isinstance(e, LLMClientError) else type(e).__name__
            logger.error(
                f"Generation failed for {user_id}: {e}",
                extra={"user_id": user_id, "failure": FailureKind.GENERATION.value, "error_code": code}
            )
            await self._push(user_id, self.fallback_text, FailureKind.FALLBACK_DELIVERY, failures)
            return HandlingResult(
                user_id=user_id,
                outcome=Outcome.FALLBACK,
                reply=self.fallback_text,
                failures=failures
            )

        reply = llm_response.text

        # Delivery and persistence are independent; neither gates the other
        await asyncio.gather(
            self._push(user_id, reply, FailureKind.DELIVERY, failures),
            self._persist(user_id, message_text, reply, failures),
        )

        result = HandlingResult(user_id=user_id, outcome=Outcome.REPLIED, reply=reply, failures=failures)
        if result.ok:
            logger.info(f"Handled message from {user_id} ({len(turns)} prior turns)")
        return result

    async def _load_history(self, user_id: str, failures: List[FailureKind]) -> List[Turn]:
        try:
            return await self.history_store.get_recent_turns(user_id, limit=self.history_limit)
        except Exception as e:
            failures.append(FailureKind.CONTEXT_READ)
            logger.warning(
                f"History unavailable for {user_id}, continuing without context: {e}",
                extra={"user_id": user_id, "failure": FailureKind.CONTEXT_READ.value}
            )
            return []

    async def _push(
        self,
        user_id: str,
        text: str,
        failure_kind: FailureKind,
        failures: List[FailureKind]
    ) -> None:
        try:
            await self.reply_sender.push_text(user_id, text)
        except Exception as e:
            failures.append(failure_kind)
            logger.error(
                f"Push to {user_id} failed: {e}",
                extra={"user_id": user_id, "failure": failure_kind.value}
            )

    async def _persist(
        self,
        user_id: str,
        question: str,
        response: str,
        failures: List[FailureKind]
    ) -> None:
        try:
            await self.history_store.insert_turn(user_id, question, response)
        except Exception as e:
            failures.append(FailureKind.PERSISTENCE)
            logger.error(
                f"Turn for {user_id} not stored: {e}",
                extra={"user_id": user_id, "failure": FailureKind.PERSISTENCE.value}
            )
