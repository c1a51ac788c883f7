"""REST API for support chat conversations."""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from traffic_chat.core.database import get_session
from traffic_chat.models.conversation import (
    ChatConversation,
    ChatMessage,
    conversation_to_dict,
    message_to_dict,
)
from traffic_chat.models.notification import AdminNotification
from traffic_chat.services.messaging import save_message

router = APIRouter()
logger = logging.getLogger(__name__)


class ConversationCreate(BaseModel):
    customer_name: str | None = None
    customer_email: str | None = None
    customer_metadata: dict[str, Any] | None = None
    visitor_id: str | None = None
    source: str = "widget"
    page_url: str | None = None


class ConversationUpdate(BaseModel):
    status: Literal["open", "closed", "archived"] | None = None
    subject: str | None = None
    customer_name: str | None = None
    read: bool | None = None


class AdminConversationCreate(BaseModel):
    user_email: str
    user_name: str | None = None
    message: str
    agent_name: str | None = None


class ConversationMerge(BaseModel):
    email: str | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_open_conversation(session: Session, email: str) -> ChatConversation | None:
    """Most recently created open conversation for an email, matched case-insensitively."""
    return session.exec(
        select(ChatConversation)
        .where(func.lower(ChatConversation.customer_email) == normalize_email(email))
        .where(ChatConversation.status == "open")
        .order_by(ChatConversation.created_at.desc())  # type: ignore
        .limit(1)
    ).first()


def merge_conversations_for_email(session: Session, email: str) -> tuple[int, int]:
    """Fold every conversation for an email into its oldest one.

    Messages move to the oldest conversation and the others are deleted. The
    survivor is reopened if any merged conversation was open. Returns
    ``(conversations merged, messages moved)``; the caller commits.
    """
    conversations = session.exec(
        select(ChatConversation)
        .where(func.lower(ChatConversation.customer_email) == normalize_email(email))
        .order_by(ChatConversation.created_at)  # type: ignore
    ).all()
    if len(conversations) <= 1:
        return 0, 0

    primary, duplicates = conversations[0], conversations[1:]
    messages = session.exec(
        select(ChatMessage).where(
            ChatMessage.conversation_id.in_([c.id for c in duplicates])  # type: ignore
        )
    ).all()
    for message in messages:
        message.conversation_id = primary.id
        session.add(message)
    # Messages must point at the survivor before their conversations go
    session.flush()

    for conv in duplicates:
        session.delete(conv)
    if any(c.status == "open" for c in duplicates):
        primary.status = "open"
        primary.closed_at = None
    primary.updated_at = datetime.now(timezone.utc)
    session.add(primary)
    return len(duplicates), len(messages)


@router.get("/")
async def list_conversations(
    status: Literal["open", "closed", "archived", "all"] = "open",
    page: int = 1,
    page_size: int = 20,
    session: Session = Depends(get_session),
):
    if page < 1 or page_size < 1:
        raise HTTPException(status_code=400, detail="page and page_size must be positive")

    query = select(ChatConversation)
    count_query = select(func.count()).select_from(ChatConversation)
    if status != "all":
        query = query.where(ChatConversation.status == status)
        count_query = count_query.where(ChatConversation.status == status)

    conversations = session.exec(
        query.order_by(
            ChatConversation.last_message_at.desc().nullslast(),  # type: ignore
            ChatConversation.created_at.desc(),  # type: ignore
        )
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    total = session.exec(count_query).one()

    return {
        "data": [conversation_to_dict(c) for c in conversations],
        "pagination": {
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size),
            "total_entries": total,
        },
    }


@router.post("/", status_code=201)
async def create_conversation(body: ConversationCreate, session: Session = Depends(get_session)):
    conv = ChatConversation(
        customer_name=body.customer_name or None,
        customer_email=normalize_email(body.customer_email) if body.customer_email else None,
        customer_metadata=body.customer_metadata or {},
        visitor_id=body.visitor_id,
        source=body.source or "widget",
        page_url=body.page_url,
        status="open",
    )
    session.add(conv)
    session.commit()
    session.refresh(conv)

    who = conv.customer_name or conv.customer_email or "an anonymous visitor"
    session.add(AdminNotification(
        type="new_conversation",
        title="New chat conversation",
        message=f"New conversation started by {who}",
        reference_id=conv.id,
        reference_type="conversation",
    ))
    session.commit()
    session.refresh(conv)

    logger.info(f"Created conversation {conv.id} ({conv.source})")
    return {"data": conversation_to_dict(conv)}


@router.get("/lookup")
async def lookup_open_conversation(email: str, session: Session = Depends(get_session)):
    if not email.strip():
        raise HTTPException(status_code=400, detail="email is required")
    conv = find_open_conversation(session, email)
    if not conv:
        raise HTTPException(status_code=404, detail="No open conversation for this email")
    return {"data": conversation_to_dict(conv)}


@router.get("/unread")
async def unread_conversation_count(session: Session = Depends(get_session)):
    count = session.exec(
        select(func.count())
        .select_from(ChatConversation)
        .where(ChatConversation.status == "open")
        .where(ChatConversation.read == False)  # noqa: E712
    ).one()
    return {"count": count}


@router.post("/admin-create")
async def admin_create_conversation(
    body: AdminConversationCreate, session: Session = Depends(get_session)
):
    """Agent-initiated conversation; reuses the customer's open conversation if there is one."""
    if not body.user_email.strip() or not body.message.strip():
        raise HTTPException(status_code=400, detail="user_email and message are required")

    email = normalize_email(body.user_email)
    existing = find_open_conversation(session, email)
    conv = existing
    if conv is None:
        conv = ChatConversation(
            customer_name=body.user_name or email,
            customer_email=email,
            source="admin",
            status="open",
        )
        session.add(conv)
        session.commit()
        session.refresh(conv)

    save_message(session, ChatMessage(
        conversation_id=conv.id,
        body=body.message,
        sender_type="agent",
        sender_name=body.agent_name,
    ))
    session.refresh(conv)
    return {"data": conversation_to_dict(conv), "existing": existing is not None}


@router.post("/merge")
async def merge_conversations(
    body: ConversationMerge | None = None, session: Session = Depends(get_session)
):
    """Merge duplicate conversations for one email, or for every email that has several."""
    if body is not None and body.email and body.email.strip():
        emails = [normalize_email(body.email)]
    else:
        customer_email = func.lower(ChatConversation.customer_email)
        emails = list(session.exec(
            select(customer_email)
            .where(ChatConversation.customer_email.is_not(None))  # type: ignore
            .group_by(customer_email)
            .having(func.count() > 1)
        ).all())

    merged = moved = 0
    for email in emails:
        conversations, messages = merge_conversations_for_email(session, email)
        merged += conversations
        moved += messages
    session.commit()

    logger.info(f"Merged {merged} conversations ({moved} messages) across {len(emails)} emails")
    return {
        "success": True,
        "emails_processed": len(emails),
        "conversations_merged": merged,
        "messages_moved": moved,
    }


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str, mark_read: bool = False, session: Session = Depends(get_session)
):
    conv = session.get(ChatConversation, conversation_id)
    if not conv:
        logger.debug(f"Conversation {conversation_id} not found")
        raise HTTPException(status_code=404, detail="Conversation not found")

    messages = session.exec(
        select(ChatMessage)
        .where(ChatMessage.conversation_id == conversation_id)
        .order_by(ChatMessage.created_at)  # type: ignore
    ).all()

    if mark_read and not conv.read:
        conv.read = True
        session.add(conv)
        session.commit()
        session.refresh(conv)

    data = conversation_to_dict(conv)
    data["messages"] = [message_to_dict(m) for m in messages]
    return {"data": data}


@router.put("/{conversation_id}")
async def update_conversation(
    conversation_id: str, body: ConversationUpdate, session: Session = Depends(get_session)
):
    conv = session.get(ChatConversation, conversation_id)
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")

    now = datetime.now(timezone.utc)
    if body.status is not None:
        conv.status = body.status
        if body.status == "closed":
            conv.closed_at = now
        elif body.status == "open":
            conv.closed_at = None
    if body.subject is not None:
        conv.subject = body.subject
    if body.customer_name is not None:
        conv.customer_name = body.customer_name
    if body.read is not None:
        conv.read = body.read

    conv.updated_at = now
    session.add(conv)
    session.commit()
    session.refresh(conv)
    return {"data": conversation_to_dict(conv)}
