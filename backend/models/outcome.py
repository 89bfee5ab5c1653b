"""Result of handling one message event."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Outcome(str, Enum):
    REPLIED = "replied"
    FALLBACK = "fallback"


class FailureKind(str, Enum):
    """Local, non-retried failures recorded during one invocation."""
    CONTEXT_READ = "context_read"
    GENERATION = "generation"
    DELIVERY = "delivery"
    PERSISTENCE = "persistence"
    FALLBACK_DELIVERY = "fallback_delivery"


@dataclass
class HandlingResult:
    user_id: str
    outcome: Outcome
    reply: Optional[str] = None
    failures: List[FailureKind] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def has_failure(self, kind: FailureKind) -> bool:
        return kind in self.failures
