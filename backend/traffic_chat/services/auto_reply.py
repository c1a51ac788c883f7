"""Automated bot replies to customer messages.

A customer message is matched against the active auto-replies by descending
priority: any keyword, or the question text itself, appearing in the message
(case-insensitive) selects that reply. Without a match, the very first
customer message of a conversation gets the default acknowledgment instead.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from traffic_chat.core.config import settings
from traffic_chat.models.auto_reply import AutoReply, ChatSetting
from traffic_chat.models.conversation import ChatMessage

logger = logging.getLogger(__name__)


def get_setting(session: Session, key: str, default: str) -> str:
    setting = session.get(ChatSetting, key)
    if setting is None or not setting.value:
        return default
    return setting.value


def is_auto_reply_enabled(session: Session) -> bool:
    return get_setting(session, "auto_reply_enabled", "true") != "false"


def find_matching_auto_reply(session: Session, message: str) -> Optional[AutoReply]:
    replies = session.exec(
        select(AutoReply)
        .where(AutoReply.is_active == True)  # noqa: E712
        .order_by(AutoReply.priority.desc())  # type: ignore
    ).all()

    normalized = message.lower().strip()
    for reply in replies:
        for keyword in reply.keywords or []:
            if keyword and keyword.lower() in normalized:
                return reply
        if reply.question and reply.question.lower() in normalized:
            return reply
    return None


def _count_customer_messages(session: Session, conversation_id: str) -> int:
    return session.exec(
        select(func.count())
        .select_from(ChatMessage)
        .where(ChatMessage.conversation_id == conversation_id)
        .where(ChatMessage.sender_type == "customer")
    ).one()


def build_auto_reply(session: Session, conversation_id: str, body: str) -> Optional[ChatMessage]:
    """Return the bot message to post after a customer message, if any.

    The returned message is not yet added to the session.
    """
    if not is_auto_reply_enabled(session):
        return None

    bot_name = get_setting(session, "bot_name", settings.bot_name)
    matched = find_matching_auto_reply(session, body)
    if matched:
        logger.debug("Auto-reply %s matched in conversation %s", matched.id, conversation_id)
        return ChatMessage(
            conversation_id=conversation_id,
            body=matched.answer,
            sender_type="bot",
            sender_name=bot_name,
        )

    if _count_customer_messages(session, conversation_id) == 1:
        return ChatMessage(
            conversation_id=conversation_id,
            body=get_setting(session, "default_acknowledgment", settings.default_acknowledgment),
            sender_type="bot",
            sender_name=bot_name,
        )
    return None
