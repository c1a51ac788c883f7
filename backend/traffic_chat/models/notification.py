"""Admin notification feed model."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class AdminNotification(SQLModel, table=True):
    __tablename__ = "admin_notifications"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    type: str  # new_conversation | ...
    title: str
    message: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
