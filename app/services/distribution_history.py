import enum
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.distribution import DistributionHistory
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class HistoryAction(enum.Enum):
    created = "created"
    updated = "updated"
    deleted = "deleted"
    documents_attached = "documents_attached"
    document_detached = "document_detached"
    verified_by_sender = "verified_by_sender"
    sent = "sent"
    received = "received"
    verified_by_receiver = "verified_by_receiver"
    document_discrepancy = "document_discrepancy"
    completed = "completed"


class DistributionHistories:
    @staticmethod
    def record(
        db: Session,
        distribution_id,
        action: HistoryAction,
        user_id=None,
        notes: str | None = None,
        metadata: dict | None = None,
    ) -> DistributionHistory:
        entry = DistributionHistory(
            distribution_id=coerce_uuid(distribution_id),
            action=action.value,
            user_id=coerce_uuid(user_id),
            notes=notes,
            metadata_=metadata,
        )
        db.add(entry)
        db.flush()
        logger.debug("History %s on distribution %s", action.value, distribution_id)
        return entry

    @staticmethod
    def list(db: Session, distribution_id) -> list[DistributionHistory]:
        """Entries newest first."""
        stmt = (
            select(DistributionHistory)
            .where(DistributionHistory.distribution_id == coerce_uuid(distribution_id))
            .order_by(DistributionHistory.created_at.desc(), DistributionHistory.id.desc())
        )
        return db.scalars(stmt).all()


distribution_histories = DistributionHistories()
