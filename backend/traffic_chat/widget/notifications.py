"""Admin-side badges: unread notifications and unread conversations."""

import logging

from traffic_chat.widget.client import ChatAPIClient
from traffic_chat.widget.polling import RepeatingTask
from traffic_chat.widget.unread import badge_text

logger = logging.getLogger(__name__)


class AdminBadgePoller:
    def __init__(self, api: ChatAPIClient, interval: float = 15.0, cap: int = 9) -> None:
        self._api = api
        self._cap = cap
        self._task = RepeatingTask(interval, self.refresh, name="admin-badges")
        self.notification_count = 0
        self.conversation_count = 0

    @property
    def notification_badge(self) -> str:
        return badge_text(self.notification_count, self._cap)

    @property
    def conversation_badge(self) -> str:
        return badge_text(self.conversation_count, self._cap)

    async def refresh(self) -> None:
        feed = await self._api.list_notifications(unread_only=True, limit=1)
        self.notification_count = int(feed.get("unread_count", 0))
        self.conversation_count = await self._api.unread_conversation_count()

    async def mark_read(self, notification_id: str) -> None:
        await self._api.mark_notification_read(notification_id, True)
        self.notification_count = max(self.notification_count - 1, 0)

    async def mark_all_read(self) -> None:
        await self._api.mark_all_notifications_read()
        self.notification_count = 0

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
