"""REST API for chat messages.

Customer messages posted here may trigger an automated bot reply; both the
customer message and any reply are published to realtime subscribers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from traffic_chat.core.database import get_session
from traffic_chat.models.conversation import ChatConversation, ChatMessage, message_to_dict
from traffic_chat.services.auto_reply import build_auto_reply
from traffic_chat.services.messaging import save_message

router = APIRouter()
logger = logging.getLogger(__name__)


class MessageCreate(BaseModel):
    conversation_id: str
    body: str
    sender_type: Literal["customer", "agent", "bot", "note"] = "customer"
    sender_name: str | None = None
    sender_id: str | None = None
    is_private: bool = False
    attachments: list[dict[str, Any]] = []


@router.get("/")
async def list_messages(
    conversation_id: str,
    include_private: bool = False,
    session: Session = Depends(get_session),
):
    query = select(ChatMessage).where(ChatMessage.conversation_id == conversation_id)
    if not include_private:
        query = query.where(ChatMessage.is_private == False)  # noqa: E712
    messages = session.exec(query.order_by(ChatMessage.created_at)).all()  # type: ignore
    return {"data": [message_to_dict(m) for m in messages]}


@router.get("/unread-count")
async def unread_message_count(
    conversation_id: str,
    after: datetime | None = None,
    session: Session = Depends(get_session),
):
    """Agent/bot messages visible to the customer and newer than ``after``."""
    query = (
        select(func.count())
        .select_from(ChatMessage)
        .where(ChatMessage.conversation_id == conversation_id)
        .where(ChatMessage.is_private == False)  # noqa: E712
        .where(ChatMessage.sender_type != "customer")
    )
    if after is not None:
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        query = query.where(ChatMessage.created_at > after.astimezone(timezone.utc))
    return {"count": session.exec(query).one()}


@router.post("/", status_code=201)
async def create_message(body: MessageCreate, session: Session = Depends(get_session)):
    if not body.conversation_id or not body.body.strip():
        raise HTTPException(status_code=400, detail="conversation_id and body are required")

    if not session.get(ChatConversation, body.conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")

    message = save_message(session, ChatMessage(
        conversation_id=body.conversation_id,
        body=body.body,
        sender_type="agent" if body.sender_type == "note" else body.sender_type,
        sender_id=body.sender_id,
        sender_name=body.sender_name,
        is_private=body.sender_type == "note" or body.is_private,
        attachments=body.attachments,
    ))
    data = message_to_dict(message)

    if body.sender_type == "customer":
        try:
            reply = build_auto_reply(session, body.conversation_id, body.body)
            if reply:
                save_message(session, reply)
        except Exception as e:
            logger.error(f"Auto-reply failed for conversation {body.conversation_id}: {e}")
            session.rollback()

    return {"data": data}
