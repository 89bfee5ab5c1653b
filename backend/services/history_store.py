"""Append-only conversation history backed by Supabase PostgreSQL."""
import itertools
import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from supabase import acreate_client, AsyncClient

from models.conversation import Turn
from config import SUPABASE_URL, SUPABASE_KEY, SUPABASE_TABLE

logger = logging.getLogger(__name__)

TURN_COLUMNS = "id,user_id,question,response,created_at"


class HistoryStoreError(Exception):
    """Raised when the history backend cannot be read or written."""


class HistoryStore(ABC):
    """Insert and recency queries over (user, question, response) turns."""

    name = "abstract"

    @abstractmethod
    async def insert_turn(self, user_id: str, question: str, response: str) -> None:
        ...

    @abstractmethod
    async def get_recent_turns(self, user_id: str, limit: int = 10) -> List[Turn]:
        """Return at most `limit` of the user's latest turns, oldest first."""
        ...


class SupabaseHistoryStore(HistoryStore):
    """History store over a single Supabase table.

    The table's identity column `id` is the ordering key; `created_at` is
    informational only, since rows inserted in the same instant would tie.
    """

    name = "supabase"

    def __init__(self, client: AsyncClient, table: str = SUPABASE_TABLE):
        self.client = client
        self.table = table
        logger.info(f"SupabaseHistoryStore initialized (table={table})")

    async def insert_turn(self, user_id: str, question: str, response: str) -> None:
        try:
            await self.client.table(self.table).insert({
                "user_id": user_id,
                "question": question,
                "response": response
            }).execute()
        except Exception as e:
            logger.error(f"Error inserting turn for user {user_id}: {e}", exc_info=True)
            raise HistoryStoreError(str(e)) from e

        logger.debug(f"Stored turn for user {user_id}")

    async def get_recent_turns(self, user_id: str, limit: int = 10) -> List[Turn]:
        if limit <= 0:
            return []

        try:
            result = await (
                self.client.table(self.table)
                .select(TURN_COLUMNS)
                .eq("user_id", user_id)
                .order("id", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error retrieving turns for user {user_id}: {e}", exc_info=True)
            raise HistoryStoreError(str(e)) from e

        rows = result.data or []
        # Newest first from the query; callers want chronological order
        turns = [self._row_to_turn(row) for row in reversed(rows)]
        logger.debug(f"Retrieved {len(turns)} turns for user {user_id}")
        return turns

    def _row_to_turn(self, row: Dict[str, Any]) -> Turn:
        created_at = row.get("created_at")
        return Turn(
            user_id=row["user_id"],
            question=row["question"],
            response=row["response"],
            sequence=row.get("id"),
            created_at=self._parse_timestamp(created_at) if created_at else None
        )

    @staticmethod
    def _parse_timestamp(timestamp_str: str) -> datetime:
        """
        Parse a timestamp string returned by PostgREST.

        Postgres may return fewer or more than six fractional digits
        (e.g. 2026-02-21T02:08:26.18976+00:00), which older
        datetime.fromisoformat() implementations reject.
        """
        timestamp_str = timestamp_str.replace("Z", "+00:00")

        if "." in timestamp_str:
            head, fraction = timestamp_str.split(".", 1)
            tz = ""
            for sign in ("+", "-"):
                if sign in fraction:
                    fraction, tz_rest = fraction.split(sign, 1)
                    tz = sign + tz_rest
                    break
            timestamp_str = f"{head}.{fraction[:6].ljust(6, '0')}{tz}"

        return datetime.fromisoformat(timestamp_str)


class InMemoryHistoryStore(HistoryStore):
    """Process-local history, used when Supabase is not configured.

    Each user keeps at most `max_turns_per_user` turns; older ones are dropped.
    """

    name = "memory"

    def __init__(self, max_turns_per_user: int = 50):
        self.max_turns_per_user = max_turns_per_user
        self._turns: Dict[str, Deque[Turn]] = {}
        self._sequence = itertools.count(1)

    async def insert_turn(self, user_id: str, question: str, response: str) -> None:
        user_turns = self._turns.setdefault(user_id, deque(maxlen=self.max_turns_per_user))
        user_turns.append(Turn(
            user_id=user_id,
            question=question,
            response=response,
            sequence=next(self._sequence),
            created_at=datetime.now()
        ))

    async def get_recent_turns(self, user_id: str, limit: int = 10) -> List[Turn]:
        if limit <= 0:
            return []
        user_turns = list(self._turns.get(user_id, ()))
        return user_turns[-limit:]


async def create_history_store(
    url: Optional[str] = None,
    key: Optional[str] = None,
    table: str = SUPABASE_TABLE
) -> HistoryStore:
    """
    Build the history store for this process.

    Falls back to InMemoryHistoryStore when no Supabase credentials are set,
    so the bot still answers, but history does not survive a restart.
    """
    url = url or SUPABASE_URL
    key = key or SUPABASE_KEY

    if not url or not key:
        logger.warning("SUPABASE_URL/SUPABASE_KEY not set, using in-memory history")
        return InMemoryHistoryStore()

    client = await acreate_client(url, key)
    return SupabaseHistoryStore(client, table)
