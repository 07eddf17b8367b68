"""Distribution lifecycle.

``draft -> verified_by_sender -> sent -> received -> verified_by_receiver ->
completed``. Every mutating operation locks the distribution row, checks the
current status, writes the change plus its history entries and commits.
Events are published only after the commit succeeded.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    DiscrepancyPending,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.models.distribution import (
    Distribution,
    DistributionDocument,
    DistributionStatus,
    DocumentKind,
)
from app.observability import TRANSITIONS
from app.schemas.distribution import DistributionCreate, DistributionUpdate
from app.services.bundler import DocumentBundler
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.departments import Departments
from app.services.distribution_history import DistributionHistories, HistoryAction
from app.services.distribution_type import DistributionTypes
from app.services.documents import Documents, DocumentRef, make_ref, parse_kind
from app.services.event import EventType, publish_event
from app.services.identity import Actor
from app.services.location_ledger import LocationLedger
from app.services.numbering import DistributionNumbers
from app.services.response import ListResponseMixin
from app.services.verification import Verification

logger = logging.getLogger(__name__)

DEPARTMENT_DIRECTIONS = ("origin", "destination", "both")
USER_ROLES = ("creator", "sender_verifier", "receiver_verifier", "all")


@dataclass
class CreateResult:
    distribution: Distribution
    warnings: list[dict] = field(default_factory=list)
    auto_included: list[dict] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _unit_of_work(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _lock(db: Session, distribution_id) -> Distribution:
    distribution = db.execute(
        select(Distribution)
        .where(
            Distribution.id == coerce_uuid(distribution_id),
            Distribution.deleted_at.is_(None),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not distribution:
        raise NotFoundError(
            "Distribution not found", {"distribution_id": str(distribution_id)}
        )
    return distribution


def _require_status(
    distribution: Distribution, expected: DistributionStatus, message: str
) -> None:
    if distribution.status != expected:
        raise InvalidStateError(message, current_status=distribution.status.value)


def _to_refs(references) -> list[DocumentRef]:
    refs = []
    for ref in references:
        if isinstance(ref, DocumentRef):
            refs.append(ref)
        elif isinstance(ref, dict):
            refs.append(make_ref(ref.get("document_kind"), ref.get("document_id")))
        else:
            refs.append(make_ref(ref.document_kind, ref.document_id))
    return refs


def _attach_rows(
    distribution: Distribution, refs: list[DocumentRef], auto_included: list[dict]
) -> None:
    auto_ids = {item["document_id"] for item in auto_included}
    for ref in refs:
        distribution.documents.append(
            DistributionDocument(
                document_kind=ref.kind,
                document_id=ref.id,
                auto_included=(
                    ref.kind == DocumentKind.additional_document
                    and str(ref.id) in auto_ids
                ),
            )
        )


def _insert_with_number(
    db: Session, distribution: Distribution, location_code: str, type_code: str
) -> None:
    """Allocate a number and insert the row, retrying on a number collision."""
    attempts = max(settings.distribution_number_retries, 1)
    for attempt in range(1, attempts + 1):
        savepoint = db.begin_nested()
        try:
            distribution.distribution_number = DistributionNumbers.next_number(
                db, location_code, type_code
            )
            db.add(distribution)
            db.flush()
            savepoint.commit()
            return
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "Distribution number collision for %s/%s (attempt %d/%d)",
                location_code,
                type_code,
                attempt,
                attempts,
            )
            if attempt == attempts:
                raise


def _record_transition(action: HistoryAction, distribution: Distribution) -> None:
    TRANSITIONS.labels(action.value).inc()
    logger.info(
        "Distribution %s %s (%s)",
        distribution.distribution_number,
        action.value,
        distribution.id,
    )


class Distributions(ListResponseMixin):
    # ------------------------------------------------------------------
    # Draft management
    # ------------------------------------------------------------------

    @staticmethod
    def create(db: Session, actor: Actor, payload: DistributionCreate) -> CreateResult:
        origin_id = coerce_uuid(payload.origin_department_id or actor.department_id)
        destination_id = coerce_uuid(payload.destination_department_id)
        if origin_id is None:
            raise ValidationError("Origin department is required")
        if origin_id == destination_id:
            raise ValidationError(
                "Origin and destination departments must be different"
            )
        if not payload.document_kind:
            raise ValidationError("Document kind is required")
        kind = parse_kind(payload.document_kind)
        refs = _to_refs(payload.documents)
        if not refs:
            raise ValidationError("At least one document is required")

        with _unit_of_work(db):
            dist_type = DistributionTypes.get(db, payload.type_id)
            origin = Departments.get(db, origin_id)
            Departments.get(db, destination_id)
            if actor.department_id is None:
                raise ValidationError("Acting user has no department")
            caller_location = Departments.location_code(db, actor.department_id)
            origin_location = Departments.location_code(db, origin.id)

            bundle = DocumentBundler.bundle(db, kind, refs, caller_location)

            distribution = Distribution(
                type_id=dist_type.id,
                origin_department_id=origin.id,
                destination_department_id=destination_id,
                document_kind=kind,
                status=DistributionStatus.draft,
                created_by=actor.user_id,
                notes=payload.notes,
            )
            _insert_with_number(db, distribution, origin_location, dist_type.code)
            _attach_rows(distribution, bundle.documents, bundle.auto_included)
            db.flush()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.created,
                user_id=actor.user_id,
                notes="Distribution created",
                metadata={
                    "documents": len(bundle.documents),
                    "auto_included": len(bundle.auto_included),
                    "warnings": len(bundle.warnings),
                },
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.created, distribution)
        publish_event(
            EventType.distribution_created,
            distribution.id,
            actor_id=actor.user_id,
            payload={"distribution_number": distribution.distribution_number},
        )
        return CreateResult(distribution, bundle.warnings, bundle.auto_included)

    @staticmethod
    def update(
        db: Session, actor: Actor, distribution_id, payload: DistributionUpdate
    ) -> Distribution:
        data = payload.model_dump(exclude_unset=True)
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.draft,
                "Can only update distributions in draft status",
            )
            if data.get("type_id") is not None:
                data["type_id"] = DistributionTypes.get(db, data["type_id"]).id
            elif "type_id" in data:
                raise ValidationError("Distribution type cannot be empty")
            if "destination_department_id" in data:
                destination = Departments.get(db, data["destination_department_id"])
                if destination.id == distribution.origin_department_id:
                    raise ValidationError(
                        "Origin and destination departments must be different"
                    )
                data["destination_department_id"] = destination.id
            for key, value in data.items():
                setattr(distribution, key, value)
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.updated,
                user_id=actor.user_id,
                notes="Distribution updated",
                metadata={"fields": sorted(data)},
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.updated, distribution)
        return distribution

    @staticmethod
    def delete(db: Session, actor: Actor, distribution_id) -> bool:
        """Soft-delete a draft. Returns False without changes otherwise."""
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            if distribution.status != DistributionStatus.draft:
                logger.info(
                    "Refused to delete distribution %s in status %s",
                    distribution.distribution_number,
                    distribution.status.value,
                )
                return False
            distribution.deleted_at = _now()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.deleted,
                user_id=actor.user_id,
                notes="Distribution deleted",
            )
        _record_transition(HistoryAction.deleted, distribution)
        return True

    @staticmethod
    def attach_documents(
        db: Session, actor: Actor, distribution_id, references
    ) -> CreateResult:
        refs = _to_refs(references)
        if not refs:
            raise ValidationError("At least one document is required")
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.draft,
                "Can only modify documents in draft status",
            )
            location = Departments.location_code(db, distribution.origin_department_id)
            attached = {
                DocumentRef(item.document_kind, item.document_id)
                for item in distribution.documents
            }
            bundle = DocumentBundler.bundle(
                db, distribution.document_kind, refs, location, exclude=attached
            )
            _attach_rows(distribution, bundle.documents, bundle.auto_included)
            db.flush()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.documents_attached,
                user_id=actor.user_id,
                notes="Documents attached to distribution",
                metadata={
                    "documents": len(bundle.documents),
                    "auto_included": len(bundle.auto_included),
                    "warnings": len(bundle.warnings),
                },
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.documents_attached, distribution)
        return CreateResult(distribution, bundle.warnings, bundle.auto_included)

    @staticmethod
    def detach_document(
        db: Session, actor: Actor, distribution_id, document_kind, document_id
    ) -> Distribution:
        ref = make_ref(document_kind, document_id)
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.draft,
                "Can only modify documents in draft status",
            )
            row = next(
                (
                    item
                    for item in distribution.documents
                    if item.document_kind == ref.kind and item.document_id == ref.id
                ),
                None,
            )
            if row is None:
                raise NotFoundError(
                    "Document is not attached to this distribution", ref.as_dict()
                )
            if len(distribution.documents) == 1:
                raise ValidationError(
                    "A distribution must contain at least one document", ref.as_dict()
                )
            distribution.documents.remove(row)
            db.flush()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.document_detached,
                user_id=actor.user_id,
                notes=f"Document {ref.kind.value}:{ref.id} detached from distribution",
                metadata=ref.as_dict(),
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.document_detached, distribution)
        return distribution

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    @staticmethod
    def verify_sender(
        db: Session,
        actor: Actor,
        distribution_id,
        verifications=None,
        notes: str | None = None,
    ) -> Distribution:
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.draft,
                "Distribution must be in draft status for sender verification",
            )
            entries = Verification.apply_sender(distribution, verifications)
            distribution.status = DistributionStatus.verified_by_sender
            distribution.sender_verified_at = _now()
            distribution.sender_verified_by = actor.user_id
            distribution.sender_verification_notes = notes
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.verified_by_sender,
                user_id=actor.user_id,
                notes="Distribution verified by sender",
                metadata={
                    "verified": len(entries),
                    "flagged": sum(1 for e in entries if e.is_discrepancy),
                },
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.verified_by_sender, distribution)
        return distribution

    @staticmethod
    def send(db: Session, actor: Actor, distribution_id) -> Distribution:
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.verified_by_sender,
                "Distribution must be verified by sender before sending",
            )
            distribution.status = DistributionStatus.sent
            distribution.sent_at = _now()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.sent,
                user_id=actor.user_id,
                notes="Distribution sent to destination department",
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.sent, distribution)
        publish_event(
            EventType.distribution_sent,
            distribution.id,
            actor_id=actor.user_id,
            payload={"distribution_number": distribution.distribution_number},
        )
        return distribution

    @staticmethod
    def receive(db: Session, actor: Actor, distribution_id) -> Distribution:
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.sent,
                "Distribution must be sent before it can be received",
            )
            location_code = Departments.location_code(
                db, distribution.destination_department_id
            )
            moved = LocationLedger.relocate_distribution(
                db, distribution, location_code, moved_by=actor.user_id
            )
            distribution.status = DistributionStatus.received
            distribution.received_at = _now()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.received,
                user_id=actor.user_id,
                notes=(
                    "Distribution received by destination department. "
                    f"Document locations updated to {location_code}"
                ),
                metadata={"location_code": location_code, "moved": len(moved)},
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.received, distribution)
        publish_event(
            EventType.distribution_received,
            distribution.id,
            actor_id=actor.user_id,
            payload={
                "distribution_number": distribution.distribution_number,
                "location_code": location_code,
            },
        )
        return distribution

    @staticmethod
    def verify_receiver(
        db: Session,
        actor: Actor,
        distribution_id,
        verifications=None,
        notes: str | None = None,
        force_complete_with_discrepancies: bool = False,
    ) -> Distribution:
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.received,
                "Distribution must be received before receiver verification",
            )
            discrepancies, applied = Verification.apply_receiver(
                distribution, verifications, force=force_complete_with_discrepancies
            )
            if not applied:
                raise DiscrepancyPending(discrepancies)

            distribution.status = DistributionStatus.verified_by_receiver
            distribution.receiver_verified_at = _now()
            distribution.receiver_verified_by = actor.user_id
            distribution.receiver_verification_notes = notes
            distribution.has_discrepancies = bool(discrepancies)
            summary = "Distribution verified by receiver"
            if discrepancies:
                summary += " (with discrepancies)"
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.verified_by_receiver,
                user_id=actor.user_id,
                notes=summary,
                metadata={"discrepancies": len(discrepancies)},
            )
            for item in discrepancies:
                detail = (
                    f"Document {item['document_kind']}:{item['document_id']} "
                    f"marked as {item['status']}"
                )
                if item["notes"]:
                    detail += f" - {item['notes']}"
                DistributionHistories.record(
                    db,
                    distribution.id,
                    HistoryAction.document_discrepancy,
                    user_id=actor.user_id,
                    notes=detail,
                    metadata=item,
                )
        db.refresh(distribution)
        _record_transition(HistoryAction.verified_by_receiver, distribution)
        if discrepancies:
            publish_event(
                EventType.distribution_discrepancy,
                distribution.id,
                actor_id=actor.user_id,
                payload={
                    "distribution_number": distribution.distribution_number,
                    "discrepancies": discrepancies,
                },
            )
        return distribution

    @staticmethod
    def complete(db: Session, actor: Actor, distribution_id) -> Distribution:
        with _unit_of_work(db):
            distribution = _lock(db, distribution_id)
            _require_status(
                distribution,
                DistributionStatus.verified_by_receiver,
                "Distribution must be verified by receiver before completion",
            )
            distribution.status = DistributionStatus.completed
            distribution.completed_at = _now()
            DistributionHistories.record(
                db,
                distribution.id,
                HistoryAction.completed,
                user_id=actor.user_id,
                notes="Distribution completed",
            )
        db.refresh(distribution)
        _record_transition(HistoryAction.completed, distribution)
        publish_event(
            EventType.distribution_completed,
            distribution.id,
            actor_id=actor.user_id,
            payload={"distribution_number": distribution.distribution_number},
        )
        return distribution

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get(db: Session, distribution_id) -> Distribution:
        distribution = db.get(Distribution, coerce_uuid(distribution_id))
        if not distribution or distribution.is_deleted:
            raise NotFoundError(
                "Distribution not found", {"distribution_id": str(distribution_id)}
            )
        return distribution

    @staticmethod
    def get_by_number(db: Session, distribution_number: str) -> Distribution:
        distribution = (
            db.query(Distribution)
            .filter(
                Distribution.distribution_number == distribution_number,
                Distribution.deleted_at.is_(None),
            )
            .first()
        )
        if not distribution:
            raise NotFoundError(
                "Distribution not found", {"distribution_number": distribution_number}
            )
        return distribution

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        type_id: str | None,
        origin_department_id: str | None,
        destination_department_id: str | None,
        department_id: str | None,
        created_by: str | None,
        document_kind: str | None,
        search: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Distribution]:
        query = db.query(Distribution).filter(Distribution.deleted_at.is_(None))
        if status:
            query = query.filter(Distribution.status == _parse_status(status))
        if type_id:
            query = query.filter(Distribution.type_id == coerce_uuid(type_id))
        if origin_department_id:
            query = query.filter(
                Distribution.origin_department_id == coerce_uuid(origin_department_id)
            )
        if destination_department_id:
            query = query.filter(
                Distribution.destination_department_id
                == coerce_uuid(destination_department_id)
            )
        if department_id:
            department = coerce_uuid(department_id)
            query = query.filter(
                or_(
                    Distribution.origin_department_id == department,
                    Distribution.destination_department_id == department,
                )
            )
        if created_by:
            query = query.filter(Distribution.created_by == coerce_uuid(created_by))
        if document_kind:
            query = query.filter(Distribution.document_kind == parse_kind(document_kind))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Distribution.distribution_number.ilike(pattern),
                    Distribution.notes.ilike(pattern),
                )
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Distribution.created_at,
                "distribution_number": Distribution.distribution_number,
                "status": Distribution.status,
                "sent_at": Distribution.sent_at,
                "received_at": Distribution.received_at,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_by_department(
        db: Session, department_id, direction: str = "both"
    ) -> list[Distribution]:
        if direction not in DEPARTMENT_DIRECTIONS:
            raise ValidationError(
                f"Invalid direction. Allowed: {', '.join(DEPARTMENT_DIRECTIONS)}"
            )
        department = coerce_uuid(department_id)
        origin = Distribution.origin_department_id == department
        destination = Distribution.destination_department_id == department
        condition = {
            "origin": origin,
            "destination": destination,
            "both": or_(origin, destination),
        }[direction]
        return (
            db.query(Distribution)
            .filter(Distribution.deleted_at.is_(None), condition)
            .order_by(Distribution.created_at.desc())
            .all()
        )

    @staticmethod
    def list_by_status(db: Session, status: str) -> list[Distribution]:
        return (
            db.query(Distribution)
            .filter(
                Distribution.deleted_at.is_(None),
                Distribution.status == _parse_status(status),
            )
            .order_by(Distribution.created_at.desc())
            .all()
        )

    @staticmethod
    def list_by_user(db: Session, user_id, role: str = "all") -> list[Distribution]:
        if role not in USER_ROLES:
            raise ValidationError(f"Invalid role. Allowed: {', '.join(USER_ROLES)}")
        user = coerce_uuid(user_id)
        columns = {
            "creator": [Distribution.created_by],
            "sender_verifier": [Distribution.sender_verified_by],
            "receiver_verifier": [Distribution.receiver_verified_by],
        }
        selected = (
            [c for cols in columns.values() for c in cols]
            if role == "all"
            else columns[role]
        )
        return (
            db.query(Distribution)
            .filter(
                Distribution.deleted_at.is_(None),
                or_(*[column == user for column in selected]),
            )
            .order_by(Distribution.created_at.desc())
            .all()
        )

    @staticmethod
    def get_history(db: Session, distribution_id):
        distribution = Distributions.get(db, distribution_id)
        return DistributionHistories.list(db, distribution.id)

    @staticmethod
    def discrepancy_summary(db: Session, distribution_id) -> dict:
        return Verification.summary(Distributions.get(db, distribution_id))

    @staticmethod
    def transmittal(db: Session, distribution_id) -> dict:
        """Data for the printable transmittal advice of a distribution."""
        distribution = Distributions.get(db, distribution_id)
        rows = []
        for item in distribution.documents:
            document = Documents.get(db, item.document_kind, item.document_id)
            rows.append(
                {
                    "document_kind": item.document_kind,
                    "document_id": item.document_id,
                    "document_number": document.display_number if document else "",
                    "auto_included": item.auto_included,
                    "sender_verification_status": item.sender_verification_status,
                    "receiver_verification_status": item.receiver_verification_status,
                }
            )
        return {
            "distribution_number": distribution.distribution_number,
            "type_name": distribution.type.name,
            "type_code": distribution.type.code,
            "status": distribution.status,
            "document_kind": distribution.document_kind,
            "origin": _department_block(distribution.origin_department),
            "destination": _department_block(distribution.destination_department),
            "created_by": distribution.creator.full_name,
            "notes": distribution.notes,
            "created_at": distribution.created_at,
            "sender_verified_at": distribution.sender_verified_at,
            "sent_at": distribution.sent_at,
            "received_at": distribution.received_at,
            "receiver_verified_at": distribution.receiver_verified_at,
            "completed_at": distribution.completed_at,
            "documents": rows,
        }

    @staticmethod
    def is_number_available(db: Session, distribution_number: str, exclude_id=None) -> bool:
        return DistributionNumbers.is_available(
            db, distribution_number, exclude_id=coerce_uuid(exclude_id)
        )


def _parse_status(value) -> DistributionStatus:
    if isinstance(value, DistributionStatus):
        return value
    try:
        return DistributionStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {value}. "
            f"Allowed: {', '.join(s.value for s in DistributionStatus)}"
        )


def _department_block(department) -> dict:
    return {
        "id": department.id,
        "name": department.name,
        "akronim": department.akronim,
        "location_code": department.location_code,
    }


distributions = Distributions()
