from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.schemas.common import ListResponse
from app.schemas.notification import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationRead,
    UnreadCountResponse,
)
from app.services.identity import Actor
from app.services.notification import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return {"count": notifications.unread_count(db, actor.user_id)}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    event_type: str | None = None,
    is_read: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return notifications.list_response(
        db,
        actor.user_id,
        event_type,
        is_read,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/mark-read", response_model=MarkReadResponse)
def mark_read(
    payload: MarkReadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    count = notifications.mark_read(
        db, actor.user_id, [str(nid) for nid in payload.notification_ids]
    )
    return {"updated": count}
