import uuid
from unittest.mock import patch

import pytest

from app.models.distribution import Distribution, DistributionStatus, DocumentKind
from app.models.notification import Notification
from app.models.person import Person
from app.tasks.notifications import _dispatch, dispatch_distribution_notification


@pytest.fixture()
def distribution(db_session, dist_type, department, destination, person):
    distribution = Distribution(
        distribution_number="25/HQ/N/00001",
        type_id=dist_type.id,
        origin_department_id=department.id,
        destination_department_id=destination.id,
        document_kind=DocumentKind.invoice,
        status=DistributionStatus.sent,
        created_by=person.id,
    )
    db_session.add(distribution)
    db_session.commit()
    db_session.refresh(distribution)
    return distribution


@pytest.fixture()
def send_email_delay():
    with patch("app.tasks.notifications.send_notification_email.delay") as mock_delay:
        yield mock_delay


def _notifications(db):
    return db.query(Notification).order_by(Notification.created_at).all()


class TestDispatchNotification:
    def test_sent_notifies_destination(
        self, db_session, distribution, person, receiver, send_email_delay
    ) -> None:
        _dispatch(db_session, "distribution.sent", str(distribution.id), str(person.id), {})

        rows = _notifications(db_session)
        assert [n.person_id for n in rows] == [receiver.id]
        assert rows[0].title == "Distribution sent: 25/HQ/N/00001"
        assert rows[0].distribution_id == str(distribution.id)
        assert rows[0].metadata_ == {"distribution_number": "25/HQ/N/00001"}
        send_email_delay.assert_called_once_with(
            str(receiver.id), "Distribution sent", rows[0].body
        )

    def test_actor_is_not_notified(
        self, db_session, distribution, person, receiver, send_email_delay
    ) -> None:
        _dispatch(
            db_session,
            "distribution.received",
            str(distribution.id),
            str(person.id),
            {"location_code": "WH1"},
        )
        assert _notifications(db_session) == []

    def test_completed_notifies_both_departments(
        self, db_session, distribution, person, receiver, send_email_delay
    ) -> None:
        _dispatch(db_session, "distribution.completed", str(distribution.id), None, {})
        assert {n.person_id for n in _notifications(db_session)} == {
            person.id,
            receiver.id,
        }

    def test_discrepancy_body_counts(
        self, db_session, distribution, person, receiver, send_email_delay
    ) -> None:
        payload = {
            "discrepancies": [
                {"status": "missing"},
                {"status": "missing"},
                {"status": "damaged"},
            ]
        }
        _dispatch(
            db_session,
            "distribution.discrepancy",
            str(distribution.id),
            str(receiver.id),
            payload,
        )
        rows = _notifications(db_session)
        assert [n.person_id for n in rows] == [person.id]
        assert "2 missing, 1 damaged" in rows[0].body

    def test_inactive_members_skipped(
        self, db_session, distribution, department, send_email_delay
    ) -> None:
        inactive = Person(
            first_name="Gone",
            last_name="User",
            email="gone@example.com",
            department_id=department.id,
            is_active=False,
        )
        db_session.add(inactive)
        db_session.commit()
        _dispatch(db_session, "distribution.completed", str(distribution.id), None, {})
        assert inactive.id not in {n.person_id for n in _notifications(db_session)}

    def test_emails_not_queued_when_commit_fails(
        self, db_session, distribution, person, receiver, send_email_delay
    ) -> None:
        with patch.object(db_session, "commit", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                _dispatch(
                    db_session,
                    "distribution.sent",
                    str(distribution.id),
                    str(person.id),
                    {},
                )
        send_email_delay.assert_not_called()
        db_session.rollback()

    def test_unknown_distribution(self, db_session, send_email_delay) -> None:
        _dispatch(db_session, "distribution.sent", str(uuid.uuid4()), None, {})
        assert _notifications(db_session) == []
        send_email_delay.assert_not_called()

    def test_unknown_event_type_ignored(self) -> None:
        with patch("app.db.SessionLocal") as session_factory:
            dispatch_distribution_notification(
                event_type="distribution.archived", distribution_id="d-1"
            )
        session_factory.assert_not_called()
