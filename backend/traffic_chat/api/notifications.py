"""REST API for the admin notification feed and its unread badge."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from traffic_chat.core.database import get_session
from traffic_chat.models.conversation import isoformat
from traffic_chat.models.notification import AdminNotification

router = APIRouter()


def _notification_dict(n: AdminNotification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "reference_id": n.reference_id,
        "reference_type": n.reference_type,
        "is_read": n.is_read,
        "created_at": isoformat(n.created_at),
    }


@router.get("/")
async def list_notifications(
    unread_only: bool = False, limit: int = 20, session: Session = Depends(get_session)
):
    query = select(AdminNotification)
    if unread_only:
        query = query.where(AdminNotification.is_read == False)  # noqa: E712
    notifications = session.exec(
        query.order_by(AdminNotification.created_at.desc()).limit(limit if limit > 0 else 20)  # type: ignore
    ).all()

    unread_count = session.exec(
        select(func.count())
        .select_from(AdminNotification)
        .where(AdminNotification.is_read == False)  # noqa: E712
    ).one()

    return {
        "notifications": [_notification_dict(n) for n in notifications],
        "unread_count": unread_count,
    }


@router.post("/mark-all-read")
async def mark_all_read(session: Session = Depends(get_session)):
    unread = session.exec(
        select(AdminNotification).where(AdminNotification.is_read == False)  # noqa: E712
    ).all()
    for n in unread:
        n.is_read = True
        session.add(n)
    session.commit()
    return {"success": True}


@router.put("/{notification_id}")
async def update_notification(
    notification_id: str,
    is_read: Any = Body(None, embed=True),
    session: Session = Depends(get_session),
):
    if not isinstance(is_read, bool):
        raise HTTPException(status_code=400, detail="is_read must be a boolean")

    notification = session.get(AdminNotification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = is_read
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return {"notification": _notification_dict(notification)}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, session: Session = Depends(get_session)):
    notification = session.get(AdminNotification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    session.delete(notification)
    session.commit()
    return {"success": True}
