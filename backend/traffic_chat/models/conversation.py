"""Support chat conversation and message models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp as UTC ISO-8601. SQLite hands back naive values."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class ChatConversation(SQLModel, table=True):
    __tablename__ = "chat_conversations"

    id: str = Field(default_factory=_new_id, primary_key=True)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = Field(default=None, index=True)
    customer_metadata: dict = Field(default_factory=dict, sa_column=Column(JSON))
    visitor_id: Optional[str] = None
    status: str = Field(default="open", index=True)  # open | closed | archived
    subject: Optional[str] = None
    preview: Optional[str] = None
    read: bool = Field(default=False)
    last_message_at: Optional[datetime] = None
    source: str = Field(default="widget")  # widget | admin
    page_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    closed_at: Optional[datetime] = None


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"

    id: str = Field(default_factory=_new_id, primary_key=True)
    conversation_id: str = Field(foreign_key="chat_conversations.id", index=True)
    sender_type: str  # "customer" | "agent" | "bot"
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    body: str
    is_private: bool = Field(default=False)
    attachments: list = Field(default_factory=list, sa_column=Column(JSON))
    seen_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)


def conversation_to_dict(conv: ChatConversation) -> dict[str, Any]:
    return {
        "id": conv.id,
        "customer_name": conv.customer_name,
        "customer_email": conv.customer_email,
        "customer_metadata": conv.customer_metadata or {},
        "visitor_id": conv.visitor_id,
        "status": conv.status,
        "subject": conv.subject,
        "preview": conv.preview,
        "read": conv.read,
        "last_message_at": isoformat(conv.last_message_at),
        "source": conv.source,
        "page_url": conv.page_url,
        "created_at": isoformat(conv.created_at),
        "updated_at": isoformat(conv.updated_at),
        "closed_at": isoformat(conv.closed_at),
    }


def message_to_dict(msg: ChatMessage) -> dict[str, Any]:
    return {
        "id": msg.id,
        "conversation_id": msg.conversation_id,
        "sender_type": msg.sender_type,
        "sender_id": msg.sender_id,
        "sender_name": msg.sender_name,
        "body": msg.body,
        "is_private": msg.is_private,
        "attachments": msg.attachments or [],
        "seen_at": isoformat(msg.seen_at),
        "created_at": isoformat(msg.created_at),
    }
