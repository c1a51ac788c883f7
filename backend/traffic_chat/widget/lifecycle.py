"""Chat widget controller: which conversation is current and how it is shown.

Conversation states::

    no_conversation --identify--> active
    no_conversation --mount/poll--> resuming --> active | closed
    resuming --not found / fetch failure--> no_conversation

``closed`` is only ever entered because the server says so (an agent closed
the thread); this client never closes a conversation itself.

View states (``closed``/``open``/``minimized``) are independent of the above.
Every view transition advances the last-seen marker of the loaded conversation.

In-flight requests are never cancelled. A slow response from a superseded
request can still overwrite newer state.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

import httpx

from traffic_chat.core.config import settings
from traffic_chat.widget.client import ChatAPIClient, ChatAPIError
from traffic_chat.widget.models import Conversation, Message
from traffic_chat.widget.polling import RepeatingTask
from traffic_chat.widget.realtime import RealtimeChannel
from traffic_chat.widget.reconciler import MessageReconciler
from traffic_chat.widget.storage import KeyValueStore
from traffic_chat.widget.unread import UnreadTracker

logger = logging.getLogger(__name__)

CONVERSATION_KEY = "chat_conversation_id"

# Anything the API layer can throw at the widget
RequestFailed = (ChatAPIError, httpx.HTTPError)


class ConversationState(str, Enum):
    NO_CONVERSATION = "no_conversation"
    RESUMING = "resuming"
    ACTIVE = "active"
    CLOSED = "closed"


class ViewState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    MINIMIZED = "minimized"


class WidgetValidationError(ValueError):
    pass


def widget_enabled_for(role: str | None) -> bool:
    """Admins answer chats from the dashboard and never get the widget."""
    return role != "admin"


class ChatWidget:
    def __init__(
        self,
        api: ChatAPIClient,
        channel: RealtimeChannel,
        store: KeyValueStore,
        *,
        user_email: str | None = None,
        user_name: str | None = None,
        greeting: str | None = None,
        bot_name: str | None = None,
        poll_interval: float | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._api = api
        self._channel = channel
        self._store = store
        self._greeting = greeting or settings.chat_greeting
        self._bot_name = bot_name or settings.bot_name
        self._poll_interval = poll_interval or settings.poll_interval_seconds

        self.user_email = user_email
        self.reconciler = MessageReconciler(api.list_messages, clock)
        self.unread = UnreadTracker(store, clock, cap=settings.unread_badge_cap)

        self.conversation: Conversation | None = None
        self.state = ConversationState.NO_CONVERSATION
        self.view = ViewState.CLOSED
        # Identification form, pre-filled for signed-in users
        self.customer_email = user_email or ""
        self.customer_name = user_name or ""
        self.draft = ""
        self.error: str | None = None
        self.loading = False
        self.sending = False

        self._unsubscribe: Callable[[], None] | None = None
        self._subscribed_to: str | None = None
        self._poller: RepeatingTask | None = None

    # --- Read-only views ---

    @property
    def messages(self) -> list[Message]:
        return self.reconciler.messages

    @property
    def unread_count(self) -> int:
        return self.unread.count

    @property
    def badge(self) -> str:
        return self.unread.badge

    @property
    def show_form(self) -> bool:
        return self.state == ConversationState.NO_CONVERSATION

    # --- Lifecycle ---

    async def mount(self) -> None:
        saved_id = self._store.get(CONVERSATION_KEY)
        if saved_id:
            await self.resume(saved_id)
        if self.user_email:
            self.start_polling()

    async def teardown(self) -> None:
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None
        self._detach()

    async def resume(self, conversation_id: str) -> bool:
        """Load a conversation by id; forget it if it cannot be loaded."""
        self.state = ConversationState.RESUMING
        self.loading = True
        self.error = None
        try:
            conv = await self._api.get_conversation(conversation_id)
        except RequestFailed as e:
            logger.info(f"Dropping saved conversation {conversation_id}: {e}")
            self._forget()
            return False
        finally:
            self.loading = False

        self._activate(conv)
        try:
            await self.reconciler.load_initial(conv.id)
        except RequestFailed as e:
            logger.warning(f"Could not load messages for {conv.id}: {e}")
            self.reconciler.reset(conv.id)

        if self.view != ViewState.OPEN:
            self.unread.recompute(conv.id, self.messages)
        return True

    async def identify(self, email: str, name: str | None = None) -> Conversation | None:
        """Identification form submit: reuse the open conversation for the email or start one."""
        email = (email or "").strip()
        if not email:
            raise WidgetValidationError("email is required")
        name = (name or "").strip() or None

        self.customer_email = email
        self.customer_name = name or ""
        self.loading = True
        self.error = None
        try:
            existing = await self._api.find_open_conversation(email.lower())
            if existing is not None:
                self._store.set(CONVERSATION_KEY, existing.id)
                self._activate(existing)
                await self.reconciler.load_initial(existing.id)
                return existing

            conv = await self._api.create_conversation(email.lower(), name)
            self._store.set(CONVERSATION_KEY, conv.id)
            greeting = await self._post_greeting(conv)
            self.reconciler.reset(conv.id, [greeting] if greeting else [])
            self._activate(conv)
            return conv
        except RequestFailed as e:
            logger.error(f"Error starting conversation: {e}")
            self._forget()
            self.error = str(e) or "Failed to start chat. Please try again."
            return None
        finally:
            self.loading = False

    async def _post_greeting(self, conv: Conversation) -> Message | None:
        try:
            return await self._api.send_message(
                conv.id, self._greeting, sender_type="bot", sender_name=self._bot_name
            )
        except RequestFailed as e:
            logger.warning(f"Greeting for {conv.id} failed: {e}")
            return None

    def _activate(self, conv: Conversation) -> None:
        self.conversation = conv
        self.state = ConversationState.ACTIVE if conv.is_open else ConversationState.CLOSED
        if not self.customer_email and conv.customer_email:
            self.customer_email = conv.customer_email
        if not self.customer_name and conv.customer_name:
            self.customer_name = conv.customer_name
        if self._subscribed_to != conv.id:
            self._detach()
            self._unsubscribe = self._channel.subscribe(conv.id, self._on_realtime)
            self._subscribed_to = conv.id

    def _detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._subscribed_to = None

    def _forget(self) -> None:
        self._store.remove(CONVERSATION_KEY)
        self._detach()
        self.conversation = None
        self.reconciler.reset(None)
        self.state = ConversationState.NO_CONVERSATION

    # --- Messaging ---

    async def send_message(self, text: str | None = None) -> Message | None:
        body = (self.draft if text is None else text).strip()
        if not body or self.conversation is None or self.sending:
            return None
        if self.state != ConversationState.ACTIVE:
            return None

        conversation_id = self.conversation.id
        sender_name = self.customer_name or self.customer_email or None
        self.draft = ""
        self.sending = True
        temp = self.reconciler.append_optimistic(body, sender_name)
        try:
            confirmed = await self._api.send_message(
                conversation_id, body, sender_type="customer", sender_name=sender_name
            )
        except RequestFailed as e:
            logger.error(f"Error sending message: {e}")
            self.draft = self.reconciler.fail_sent(temp.id, body)
            return None
        finally:
            self.sending = False

        self.reconciler.confirm_sent(temp.id, confirmed)
        return confirmed

    def _on_realtime(self, payload: Any) -> None:
        if self.reconciler.ingest_payload(payload) and self.view != ViewState.OPEN:
            self.unread.increment()

    # --- View state ---

    def open(self) -> None:
        self.view = ViewState.OPEN
        self.unread.reset()
        self._mark_seen()

    def minimize(self) -> None:
        self.view = ViewState.MINIMIZED
        self._mark_seen()

    def close(self) -> None:
        self.view = ViewState.CLOSED
        self._mark_seen()

    def _mark_seen(self) -> None:
        if self.conversation is not None:
            self.unread.mark_seen(self.conversation.id)

    # --- Background discovery for signed-in users ---

    def start_polling(self) -> None:
        if self._poller is None:
            self._poller = RepeatingTask(self._poll_interval, self.poll_once, name="chat-discovery")
        self._poller.start()

    async def poll_once(self) -> None:
        """Pick up conversations an agent opened for this user while the widget was idle."""
        if not self.user_email or self.view == ViewState.OPEN:
            return

        conv = await self._api.find_open_conversation(self.user_email.lower())
        if conv is None:
            return

        if self._store.get(CONVERSATION_KEY) != conv.id:
            self._store.set(CONVERSATION_KEY, conv.id)

        if self.conversation is None:
            await self.resume(conv.id)
            return

        count = await self._api.count_unread_messages(conv.id, after=self.unread.last_seen(conv.id))
        if count > 0:
            self.unread.set_count(count)
