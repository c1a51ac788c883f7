"""Realtime channel abstraction consumed by the widget."""

from abc import ABC, abstractmethod
from typing import Any, Callable

from traffic_chat.services.realtime import RealtimeHub, get_hub

Handler = Callable[[Any], None]


class RealtimeChannel(ABC):
    @abstractmethod
    def subscribe(self, conversation_id: str, handler: Handler) -> Callable[[], None]:
        """Deliver insert events for one conversation; returns an unsubscribe callable."""
        ...


class HubChannel(RealtimeChannel):
    """Subscribes directly to an in-process realtime hub."""

    def __init__(self, hub: RealtimeHub | None = None) -> None:
        self._hub = hub or get_hub()

    def subscribe(self, conversation_id: str, handler: Handler) -> Callable[[], None]:
        return self._hub.subscribe(conversation_id, handler)
