"""Client-side views of conversations and messages, and the realtime boundary.

Everything that crosses into the widget from the network is validated here.
Realtime payloads in particular arrive as loosely shaped dicts; they are turned
into a ``MessageInserted`` event or rejected with ``InvalidRealtimePayload``
before any reconciliation logic sees them.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ValidationError, field_validator

TEMP_ID_PREFIX = "temp-"
MESSAGES_TABLE = "chat_messages"

SenderType = Literal["customer", "agent", "bot"]


class InvalidRealtimePayload(ValueError):
    pass


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Message(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    conversation_id: str
    body: str
    sender_type: SenderType
    sender_name: str | None = None
    is_private: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)


class Conversation(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    customer_name: str | None = None
    customer_email: str | None = None
    status: str = "open"

    @property
    def is_open(self) -> bool:
        return self.status == "open"


class MessageInserted(BaseModel):
    conversation_id: str
    message: Message


def parse_realtime_payload(payload: Any) -> MessageInserted:
    """Validate a realtime insert notification for the messages table."""
    if not isinstance(payload, dict):
        raise InvalidRealtimePayload(f"expected an object, got {type(payload).__name__}")
    if payload.get("type") != "INSERT" or payload.get("table") != MESSAGES_TABLE:
        raise InvalidRealtimePayload(
            f"unsupported event {payload.get('type')!r} on {payload.get('table')!r}"
        )
    try:
        message = Message.model_validate(payload.get("record"))
    except ValidationError as e:
        raise InvalidRealtimePayload(str(e)) from e
    return MessageInserted(conversation_id=message.conversation_id, message=message)
