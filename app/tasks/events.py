import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    distribution_id: str,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Central fan-out task for distribution events."""
    event_data = {
        "event_type": event_type,
        "distribution_id": distribution_id,
        "actor_id": actor_id,
        "payload": payload or {},
    }
    logger.info("Processing event %s for distribution %s", event_type, distribution_id)

    _fanout_notifications(event_data)


def _fanout_notifications(event_data: dict) -> None:
    try:
        from app.tasks.notifications import dispatch_distribution_notification

        dispatch_distribution_notification.delay(**event_data)
    except Exception as e:
        logger.exception("Failed to fan-out notifications: %s", e)
