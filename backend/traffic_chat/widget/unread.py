"""Unread badge bookkeeping based on persisted last-seen markers."""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from traffic_chat.widget.models import Message
from traffic_chat.widget.storage import KeyValueStore

logger = logging.getLogger(__name__)

LAST_SEEN_KEY_PREFIX = "chat_last_seen_"


def last_seen_key(conversation_id: str) -> str:
    return f"{LAST_SEEN_KEY_PREFIX}{conversation_id}"


def badge_text(count: int, cap: int = 9) -> str:
    if count <= 0:
        return ""
    if count > cap:
        return f"{cap}+"
    return str(count)


class UnreadTracker:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        cap: int = 9,
    ) -> None:
        self._store = store
        self._clock = clock
        self._cap = cap
        self.count = 0

    @property
    def badge(self) -> str:
        return badge_text(self.count, self._cap)

    def last_seen(self, conversation_id: str) -> datetime | None:
        raw = self._store.get(last_seen_key(conversation_id))
        if not raw:
            return None
        try:
            seen = datetime.fromisoformat(raw)
        except ValueError:
            logger.debug("Ignoring bad last-seen marker for %s: %r", conversation_id, raw)
            return None
        return seen if seen.tzinfo else seen.replace(tzinfo=timezone.utc)

    def mark_seen(self, conversation_id: str) -> datetime:
        now = self._clock()
        self._store.set(last_seen_key(conversation_id), now.isoformat())
        return now

    def count_unseen(self, conversation_id: str, messages: Iterable[Message]) -> int:
        """Agent and bot messages newer than the marker; all of them when there is none."""
        seen = self.last_seen(conversation_id)
        return sum(
            1
            for m in messages
            if m.sender_type != "customer"
            and not m.is_private
            and (seen is None or m.created_at > seen)
        )

    def recompute(self, conversation_id: str, messages: Iterable[Message]) -> int:
        unseen = self.count_unseen(conversation_id, messages)
        if unseen > 0:
            self.count = unseen
        return unseen

    def set_count(self, count: int) -> None:
        self.count = max(count, 0)

    def increment(self, by: int = 1) -> None:
        self.count += by

    def reset(self) -> None:
        self.count = 0
