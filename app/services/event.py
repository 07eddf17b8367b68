import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    distribution_created = "distribution.created"
    distribution_sent = "distribution.sent"
    distribution_received = "distribution.received"
    distribution_discrepancy = "distribution.discrepancy"
    distribution_completed = "distribution.completed"


def publish_event(
    event_type: EventType,
    distribution_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task that fans out to in-app notifications. Call only
    after the originating transaction has committed. Never raises; failures
    are logged.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            distribution_id=str(distribution_id),
            actor_id=str(actor_id) if actor_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for distribution %s", event_type.value, distribution_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
