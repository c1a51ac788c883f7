"""Merges the three sources that feed a conversation's visible message list.

1. ``load_initial``: the full non-private history, oldest first.
2. ``append_optimistic`` / ``confirm_sent`` / ``fail_sent``: the customer's own
   sends, shown before the server answers.
3. ``ingest_realtime``: inserts pushed by the realtime channel.

Invariants: a server id appears at most once, private notes never appear, and
customer rows from the realtime channel are always dropped because the
optimistic path already owns them. Appends go to the tail without re-sorting;
anything arriving after the initial load is assumed to be newer.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from traffic_chat.widget.models import (
    TEMP_ID_PREFIX,
    InvalidRealtimePayload,
    Message,
    MessageInserted,
    parse_realtime_payload,
)
from traffic_chat.widget.pending import OptimisticList, PendingMutation

logger = logging.getLogger(__name__)

FetchMessages = Callable[[str], Awaitable[list[Message]]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageReconciler:
    def __init__(
        self,
        fetch_messages: FetchMessages,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._fetch_messages = fetch_messages
        self._clock = clock
        self._list: OptimisticList[Message] = OptimisticList(key=lambda m: m.id)
        self._pending: dict[str, PendingMutation[Message]] = {}
        self.processed_ids: set[str] = set()
        self.conversation_id: str | None = None
        # Rows ingested while a history fetch is in flight
        self._arrivals: list[Message] | None = None

    @property
    def messages(self) -> list[Message]:
        return self._list.items

    def reset(self, conversation_id: str | None, messages: list[Message] | None = None) -> None:
        """Replace the whole list, e.g. with a freshly created conversation's greeting."""
        visible = sorted(
            (m for m in messages or [] if not m.is_private), key=lambda m: m.created_at
        )
        self.conversation_id = conversation_id
        self._list.replace_all(visible)
        self._pending.clear()
        self.processed_ids.update(m.id for m in visible)

    async def load_initial(self, conversation_id: str) -> list[Message]:
        """Replace the list with the fetched history.

        Realtime rows that arrive while the fetch is in flight are kept if the
        snapshot does not already contain them.
        """
        self.conversation_id = conversation_id
        self._arrivals = []
        try:
            messages = await self._fetch_messages(conversation_id)
        finally:
            arrivals, self._arrivals = self._arrivals, None

        fetched = {m.id for m in messages}
        self.reset(conversation_id, list(messages) + [m for m in arrivals if m.id not in fetched])
        logger.debug(f"Loaded {len(self._list)} messages for conversation {conversation_id}")
        return self.messages

    def append_optimistic(self, body: str, sender_name: str | None = None) -> Message:
        if self.conversation_id is None:
            raise RuntimeError("no conversation loaded")
        temp = Message(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}",
            conversation_id=self.conversation_id,
            body=body,
            sender_type="customer",
            sender_name=sender_name,
            is_private=False,
            created_at=self._clock(),
        )
        self._pending[temp.id] = self._list.begin(temp)
        return temp

    def confirm_sent(self, temp_id: str, server_message: Message) -> None:
        self.processed_ids.add(server_message.id)
        pending = self._pending.pop(temp_id, None)
        if pending is not None:
            pending.commit(server_message)
        else:
            self._list.append(server_message)

    def fail_sent(self, temp_id: str, original_body: str) -> str:
        """Drop the temporary message; returns the draft to put back in the compose box."""
        pending = self._pending.pop(temp_id, None)
        if pending is not None:
            pending.rollback()
        else:
            self._list.remove(temp_id)
        return original_body

    def ingest_realtime(self, event: MessageInserted) -> bool:
        """Append an inserted row if it belongs in the customer's view. Returns True if appended."""
        message = event.message
        if message.is_private:
            return False
        if message.sender_type == "customer":
            return False
        if self.conversation_id is not None and event.conversation_id != self.conversation_id:
            return False
        if message.id in self.processed_ids or message.id in self._list:
            return False

        self.processed_ids.add(message.id)
        appended = self._list.append(message)
        if appended and self._arrivals is not None:
            self._arrivals.append(message)
        return appended

    def ingest_payload(self, payload: Any) -> bool:
        try:
            event = parse_realtime_payload(payload)
        except InvalidRealtimePayload as e:
            logger.debug(f"Dropping malformed realtime payload: {e}")
            return False
        return self.ingest_realtime(event)
