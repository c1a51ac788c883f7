"""Keyword-triggered auto-replies and key/value chat settings."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class AutoReply(SQLModel, table=True):
    __tablename__ = "chat_auto_replies"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    question: str
    answer: str
    keywords: list = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    priority: int = Field(default=0)  # higher is checked first
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatSetting(SQLModel, table=True):
    __tablename__ = "chat_settings"

    key: str = Field(primary_key=True)
    value: Optional[str] = None
