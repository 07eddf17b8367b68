from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.notification import Notification
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _unread(db: Session, person_id):
    return db.query(Notification).filter(
        Notification.person_id == coerce_uuid(person_id),
        Notification.is_read.is_(False),
        Notification.is_active.is_(True),
    )


class Notifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str) -> Notification:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        person_id: str,
        event_type: str | None,
        is_read: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Notification]:
        query = db.query(Notification).filter(
            Notification.person_id == coerce_uuid(person_id),
            Notification.is_active.is_(True),
        )
        if event_type is not None:
            query = query.filter(Notification.event_type == event_type)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, person_id: str, notification_ids: list[str]) -> int:
        """Mark the given notifications of ``person_id`` read; all when empty."""
        query = _unread(db, person_id)
        if notification_ids:
            query = query.filter(
                Notification.id.in_([coerce_uuid(nid) for nid in notification_ids])
            )
        now = datetime.now(timezone.utc)
        pending = query.all()
        for notification in pending:
            notification.is_read = True
            notification.read_at = now
        db.commit()
        logger.info("Marked %d notifications as read for %s", len(pending), person_id)
        return len(pending)

    @staticmethod
    def unread_count(db: Session, person_id: str) -> int:
        return _unread(db, person_id).count()


notifications = Notifications()
