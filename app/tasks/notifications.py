import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)

# Event type -> (title, departments notified). "origin" and "destination"
# refer to the distribution's departments.
_RECIPIENTS = {
    "distribution.created": ("New distribution", ("destination",)),
    "distribution.sent": ("Distribution sent", ("destination",)),
    "distribution.received": ("Distribution received", ("origin",)),
    "distribution.discrepancy": ("Distribution discrepancy", ("origin",)),
    "distribution.completed": ("Distribution completed", ("origin", "destination")),
}


@celery_app.task(
    name="app.tasks.notifications.dispatch_distribution_notification",
    ignore_result=True,
)
def dispatch_distribution_notification(
    event_type: str,
    distribution_id: str,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Create in-app notifications for the departments involved in an event."""
    if event_type not in _RECIPIENTS:
        logger.debug("No notification rule for %s", event_type)
        return

    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _dispatch(db, event_type, distribution_id, actor_id, payload or {})
    except Exception as e:
        db.rollback()
        logger.exception("Failed to dispatch notifications for %s: %s", event_type, e)
    finally:
        db.close()


def _body(event_type: str, distribution, payload: dict) -> str:
    number = distribution.distribution_number
    if event_type == "distribution.created":
        return (
            f"Distribution {number} from {distribution.origin_department.name} "
            "is being prepared for your department."
        )
    if event_type == "distribution.sent":
        return (
            f"Distribution {number} has been sent from "
            f"{distribution.origin_department.name}."
        )
    if event_type == "distribution.received":
        return (
            f"Distribution {number} was received by "
            f"{distribution.destination_department.name}."
        )
    if event_type == "distribution.discrepancy":
        discrepancies = payload.get("discrepancies") or []
        missing = sum(1 for d in discrepancies if d.get("status") == "missing")
        damaged = sum(1 for d in discrepancies if d.get("status") == "damaged")
        return (
            f"Distribution {number} was verified with discrepancies: "
            f"{missing} missing, {damaged} damaged."
        )
    return f"Distribution {number} has been completed."


def _dispatch(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    event_type: str,
    distribution_id: str,
    actor_id: str | None,
    payload: dict,
) -> None:
    from app.models.distribution import Distribution
    from app.models.notification import Notification
    from app.services.common import coerce_uuid
    from app.services.departments import Departments

    distribution = db.get(Distribution, coerce_uuid(distribution_id))
    if distribution is None:
        logger.warning("Distribution %s not found for %s", distribution_id, event_type)
        return

    title, sides = _RECIPIENTS[event_type]
    recipients = {}
    for side in sides:
        department_id = getattr(distribution, f"{side}_department_id")
        for person in Departments.members(db, department_id):
            recipients[person.id] = person
    if event_type == "distribution.discrepancy" and distribution.creator is not None:
        recipients[distribution.creator.id] = distribution.creator

    body = _body(event_type, distribution, payload)
    notified = []
    for person in recipients.values():
        if actor_id and str(person.id) == str(actor_id):
            continue
        db.add(
            Notification(
                person_id=person.id,
                title=f"{title}: {distribution.distribution_number}",
                body=body,
                event_type=event_type,
                distribution_id=str(distribution.id),
                metadata_={
                    "distribution_number": distribution.distribution_number,
                    **payload,
                },
            )
        )
        notified.append(str(person.id))

    db.commit()
    for person_id in notified:
        send_notification_email.delay(person_id, title, body)
    logger.info(
        "Dispatched %d notifications for event %s on distribution %s",
        len(notified),
        event_type,
        distribution.distribution_number,
    )


@celery_app.task(
    name="app.tasks.notifications.send_notification_email", ignore_result=True
)
def send_notification_email(
    person_id: str,
    title: str,
    body: str,
) -> None:
    """Send notification email to a person.

    Email delivery is not wired up; the message is only logged.
    """
    logger.info("Would send email to person %s: %s", person_id, title)
