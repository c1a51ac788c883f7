"""In-process realtime hub: insert notifications scoped to a conversation id.

Subscribers register a callback per conversation and receive every inserted
message row for it, private notes included. Filtering what a customer may see
is the subscriber's job. Delivery is best-effort: a failing callback is logged
and skipped so one bad listener cannot starve the others.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "chat_messages"

Listener = Callable[[dict[str, Any]], None]


class RealtimeHub:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, conversation_id: str, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners[conversation_id].append(listener)
        logger.debug("Realtime subscriber added for conversation %s", conversation_id)

        def unsubscribe() -> None:
            listeners = self._listeners.get(conversation_id)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[conversation_id]

        return unsubscribe

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._listeners.get(conversation_id, []))

    def publish_insert(self, record: dict[str, Any]) -> None:
        """Fan an inserted message row out to the conversation's listeners."""
        conversation_id = record.get("conversation_id")
        payload = {"type": "INSERT", "table": MESSAGES_TABLE, "record": record}
        for listener in list(self._listeners.get(conversation_id, [])):
            try:
                listener(payload)
            except Exception as e:
                logger.warning("Realtime listener failed for %s: %s", conversation_id, e)

    def clear(self) -> None:
        self._listeners.clear()


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    return hub
