"""Conversation data models."""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

SYSTEM_ROLE = "system"
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"


@dataclass(frozen=True)
class Turn:
    """A single persisted question/response pair for a user."""
    user_id: str
    question: str
    response: str
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ChatMessage:
    """Role-tagged entry sent to the completion API."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def build_context(
    system_prompt: str,
    turns: Sequence[Turn],
    message_text: str
) -> List[ChatMessage]:
    """
    Assemble the message list for one completion call.

    Args:
        system_prompt: Persona instruction, always the first entry
        turns: Prior turns for the user, oldest first
        message_text: The new inbound message

    Returns:
        system entry, one user/assistant pair per turn, then the new user entry
    """
    messages = [ChatMessage(role=SYSTEM_ROLE, content=system_prompt)]
    for turn in turns:
        messages.append(ChatMessage(role=USER_ROLE, content=turn.question))
        messages.append(ChatMessage(role=ASSISTANT_ROLE, content=turn.response))
    messages.append(ChatMessage(role=USER_ROLE, content=message_text))
    return messages
