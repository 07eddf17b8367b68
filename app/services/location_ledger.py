"""Append-only ledger of where each tracked document physically is.

The current location of a document is the ``location_code`` of its most
recent ``DocumentLocation`` row (``moved_at``, then insertion order). Only
when a document has no ledger rows does its own ``cur_loc`` column answer.
The value is computed on every read; ``cur_loc`` is kept in step as a
denormalized copy whenever the ledger is written through this module.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.distribution import (
    Distribution,
    DocumentKind,
    DocumentLocation,
)
from app.services.common import coerce_uuid
from app.services.documents import Documents, make_ref, parse_kind

logger = logging.getLogger(__name__)

# Kinds relocated when a distribution of the given kind is received.
RELOCATED_KINDS = {
    DocumentKind.invoice: (DocumentKind.invoice, DocumentKind.additional_document),
    DocumentKind.additional_document: (DocumentKind.additional_document,),
}


def _latest_record(db: Session, kind: DocumentKind, document_id) -> DocumentLocation | None:
    stmt = (
        select(DocumentLocation)
        .where(
            DocumentLocation.document_kind == kind,
            DocumentLocation.document_id == coerce_uuid(document_id),
        )
        .order_by(DocumentLocation.moved_at.desc(), DocumentLocation.id.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


class LocationLedger:
    @staticmethod
    def record(
        db: Session,
        kind,
        document_id,
        location_code: str,
        moved_by=None,
        distribution_id=None,
        reason: str | None = None,
    ) -> DocumentLocation:
        """Append a ledger row and sync the document's ``cur_loc``.

        Does not commit; callers own the transaction.
        """
        if not location_code:
            raise ValidationError("Location code is required")
        ref = make_ref(kind, document_id)
        Documents.set_location(db, ref.kind, ref.id, location_code)
        entry = DocumentLocation(
            document_kind=ref.kind,
            document_id=ref.id,
            location_code=location_code,
            moved_by=coerce_uuid(moved_by),
            distribution_id=coerce_uuid(distribution_id),
            reason=reason,
            moved_at=datetime.now(timezone.utc),
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def current_location(db: Session, kind, document_id) -> str | None:
        kind = parse_kind(kind)
        stored = Documents.stored_location(db, kind, document_id)
        latest = _latest_record(db, kind, document_id)
        if latest is not None:
            return latest.location_code
        return stored

    @staticmethod
    def history(db: Session, kind, document_id) -> list[DocumentLocation]:
        kind = parse_kind(kind)
        Documents.require(db, kind, document_id)
        stmt = (
            select(DocumentLocation)
            .where(
                DocumentLocation.document_kind == kind,
                DocumentLocation.document_id == coerce_uuid(document_id),
            )
            .order_by(DocumentLocation.moved_at.desc(), DocumentLocation.id.desc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def move(
        db: Session,
        kind,
        document_id,
        location_code: str,
        moved_by=None,
        reason: str | None = None,
    ) -> DocumentLocation:
        """Manual relocation outside of any distribution."""
        try:
            entry = LocationLedger.record(
                db,
                kind,
                document_id,
                location_code,
                moved_by=moved_by,
                reason=reason or "Manual relocation",
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(entry)
        logger.info(
            "Moved %s %s to %s",
            entry.document_kind.value,
            entry.document_id,
            location_code,
        )
        return entry

    @staticmethod
    def relocate_distribution(
        db: Session,
        distribution: Distribution,
        location_code: str,
        moved_by=None,
    ) -> list[DocumentLocation]:
        """Move every bundled document of ``distribution`` to ``location_code``.

        Runs inside the caller's receive transaction.
        """
        kinds = RELOCATED_KINDS[distribution.document_kind]
        reason = (
            f"Received via distribution {distribution.distribution_number}"
        )
        entries = []
        for item in distribution.documents:
            if item.document_kind not in kinds:
                continue
            entries.append(
                LocationLedger.record(
                    db,
                    item.document_kind,
                    item.document_id,
                    location_code,
                    moved_by=moved_by,
                    distribution_id=distribution.id,
                    reason=reason,
                )
            )
        logger.info(
            "Relocated %d documents of distribution %s to %s",
            len(entries),
            distribution.distribution_number,
            location_code,
        )
        return entries

    @staticmethod
    def documents_in_location(
        db: Session, location_code: str, kind=None, limit: int = 50
    ) -> list[dict]:
        kinds = [parse_kind(kind)] if kind is not None else list(DocumentKind)
        results = []
        for doc_kind in kinds:
            candidates: dict = {}
            ledger_ids = db.scalars(
                select(DocumentLocation.document_id)
                .where(
                    DocumentLocation.document_kind == doc_kind,
                    DocumentLocation.location_code == location_code,
                )
                .distinct()
            ).all()
            for document_id in ledger_ids:
                candidates[document_id] = None
            for document in Documents.list_with_stored_location(
                db, doc_kind, location_code
            ):
                candidates[document.id] = document
            for document_id, document in candidates.items():
                if LocationLedger.current_location(db, doc_kind, document_id) != location_code:
                    continue
                document = document or Documents.get(db, doc_kind, document_id)
                results.append(
                    {
                        "document_kind": doc_kind.value,
                        "document_id": document.id,
                        "document_number": document.display_number,
                        "location_code": location_code,
                    }
                )
                if len(results) >= limit:
                    return results
        return results

    @staticmethod
    def movement_statistics(db: Session, days: int = 30) -> list[dict]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        rows = db.execute(
            select(DocumentLocation.location_code, func.count(DocumentLocation.id))
            .where(DocumentLocation.moved_at >= since)
            .group_by(DocumentLocation.location_code)
            .order_by(func.count(DocumentLocation.id).desc())
        ).all()
        return [{"location_code": code, "movements": count} for code, count in rows]

    @staticmethod
    def initialize_tracking(db: Session) -> dict:
        """Seed one system ledger row for documents that have none yet."""
        results = {kind.value: 0 for kind in DocumentKind}
        try:
            for kind in DocumentKind:
                tracked = set(
                    db.scalars(
                        select(DocumentLocation.document_id)
                        .where(DocumentLocation.document_kind == kind)
                        .distinct()
                    ).all()
                )
                for document in Documents.list_with_stored_location(db, kind):
                    if document.id in tracked:
                        continue
                    LocationLedger.record(
                        db,
                        kind,
                        document.id,
                        document.cur_loc,
                        reason="Initial location tracking setup",
                    )
                    results[kind.value] += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Initialized location tracking: %s", results)
        return results


location_ledger = LocationLedger()
