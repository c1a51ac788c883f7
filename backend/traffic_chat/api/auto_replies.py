"""REST API for managing keyword auto-replies."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from traffic_chat.core.database import get_session
from traffic_chat.models.auto_reply import AutoReply
from traffic_chat.models.conversation import isoformat

router = APIRouter()


class AutoReplyCreate(BaseModel):
    question: str
    answer: str
    keywords: list[str] = []
    is_active: bool = True
    priority: int = 0


class AutoReplyUpdate(BaseModel):
    id: str
    question: str | None = None
    answer: str | None = None
    keywords: list[str] | None = None
    is_active: bool | None = None
    priority: int | None = None


def _reply_dict(r: AutoReply) -> dict:
    return {
        "id": r.id,
        "question": r.question,
        "answer": r.answer,
        "keywords": r.keywords or [],
        "is_active": r.is_active,
        "priority": r.priority,
        "created_at": isoformat(r.created_at),
        "updated_at": isoformat(r.updated_at),
    }


@router.get("/")
async def list_auto_replies(session: Session = Depends(get_session)):
    replies = session.exec(
        select(AutoReply).order_by(
            AutoReply.priority.desc(),  # type: ignore
            AutoReply.created_at.desc(),  # type: ignore
        )
    ).all()
    return {"data": [_reply_dict(r) for r in replies]}


@router.post("/", status_code=201)
async def create_auto_reply(body: AutoReplyCreate, session: Session = Depends(get_session)):
    if not body.question.strip() or not body.answer.strip():
        raise HTTPException(status_code=400, detail="question and answer are required")

    reply = AutoReply(
        question=body.question,
        answer=body.answer,
        keywords=[k for k in body.keywords if k],
        is_active=body.is_active,
        priority=body.priority,
    )
    session.add(reply)
    session.commit()
    session.refresh(reply)
    return {"data": _reply_dict(reply)}


@router.put("/")
async def update_auto_reply(body: AutoReplyUpdate, session: Session = Depends(get_session)):
    reply = session.get(AutoReply, body.id)
    if not reply:
        raise HTTPException(status_code=404, detail="Auto-reply not found")

    if body.question is not None:
        reply.question = body.question
    if body.answer is not None:
        reply.answer = body.answer
    if body.keywords is not None:
        reply.keywords = [k for k in body.keywords if k]
    if body.is_active is not None:
        reply.is_active = body.is_active
    if body.priority is not None:
        reply.priority = body.priority

    reply.updated_at = datetime.now(timezone.utc)
    session.add(reply)
    session.commit()
    session.refresh(reply)
    return {"data": _reply_dict(reply)}


@router.delete("/")
async def delete_auto_reply(id: str, session: Session = Depends(get_session)):
    reply = session.get(AutoReply, id)
    if not reply:
        raise HTTPException(status_code=404, detail="Auto-reply not found")
    session.delete(reply)
    session.commit()
    return {"success": True}
