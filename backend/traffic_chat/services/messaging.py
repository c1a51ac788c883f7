"""Message persistence shared by the customer and agent endpoints."""

import logging
from datetime import datetime, timezone

from sqlmodel import Session

from traffic_chat.models.conversation import ChatConversation, ChatMessage, message_to_dict
from traffic_chat.services.realtime import get_hub

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def save_message(session: Session, message: ChatMessage) -> ChatMessage:
    """Store a message, refresh its conversation summary and publish the insert."""
    session.add(message)
    _touch_conversation(session, message)
    session.commit()
    session.refresh(message)

    get_hub().publish_insert(message_to_dict(message))
    return message


def _touch_conversation(session: Session, message: ChatMessage) -> None:
    conv = session.get(ChatConversation, message.conversation_id)
    if not conv:
        logger.debug(f"Message for unknown conversation {message.conversation_id}")
        return
    now = datetime.now(timezone.utc)
    conv.preview = message.body[:PREVIEW_LENGTH]
    conv.last_message_at = message.created_at
    conv.updated_at = now
    if message.sender_type == "customer":
        conv.read = False
    session.add(conv)
