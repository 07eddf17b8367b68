"""Lookup of tracked documents (invoices and additional documents).

Distributions reference documents polymorphically as ``(kind, id)``. The
concrete model is resolved through ``DOCUMENT_MODELS`` so callers never
inspect class names.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.distribution import AdditionalDocument, DocumentKind, Invoice
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = {
    DocumentKind.invoice: Invoice,
    DocumentKind.additional_document: AdditionalDocument,
}

_KIND_LABELS = {
    DocumentKind.invoice: "Invoice",
    DocumentKind.additional_document: "Additional document",
}


@dataclass(frozen=True)
class DocumentRef:
    kind: DocumentKind
    id: uuid.UUID

    def as_dict(self) -> dict:
        return {"document_kind": self.kind.value, "document_id": str(self.id)}


def parse_kind(value) -> DocumentKind:
    if isinstance(value, DocumentKind):
        return value
    try:
        return DocumentKind(value)
    except ValueError:
        raise ValidationError(
            f"Invalid document kind: {value}. "
            f"Allowed: {', '.join(k.value for k in DocumentKind)}"
        )


def make_ref(kind, document_id) -> DocumentRef:
    return DocumentRef(parse_kind(kind), coerce_uuid(document_id))


def kind_label(kind: DocumentKind) -> str:
    return _KIND_LABELS[kind]


class Documents:
    @staticmethod
    def get(db: Session, kind, document_id):
        kind = parse_kind(kind)
        return db.get(DOCUMENT_MODELS[kind], coerce_uuid(document_id))

    @staticmethod
    def require(db: Session, kind, document_id):
        document = Documents.get(db, kind, document_id)
        if not document:
            raise NotFoundError(
                f"{kind_label(parse_kind(kind))} not found",
                {"document_kind": parse_kind(kind).value, "document_id": str(document_id)},
            )
        return document

    @staticmethod
    def exists(db: Session, kind, document_id) -> bool:
        return Documents.get(db, kind, document_id) is not None

    @staticmethod
    def stored_location(db: Session, kind, document_id) -> str | None:
        return Documents.require(db, kind, document_id).cur_loc

    @staticmethod
    def related_documents(db: Session, invoice_id) -> list[AdditionalDocument]:
        invoice = Documents.require(db, DocumentKind.invoice, invoice_id)
        return list(invoice.additional_documents)

    @staticmethod
    def set_location(db: Session, kind, document_id, location_code: str) -> None:
        document = Documents.require(db, kind, document_id)
        document.cur_loc = location_code
        db.flush()
        logger.debug(
            "Set stored location of %s %s to %s",
            parse_kind(kind).value,
            document_id,
            location_code,
        )

    @staticmethod
    def list_with_stored_location(db: Session, kind, location_code: str | None = None):
        model = DOCUMENT_MODELS[parse_kind(kind)]
        query = db.query(model)
        if location_code is None:
            query = query.filter(model.cur_loc.isnot(None))
        else:
            query = query.filter(model.cur_loc == location_code)
        return query.all()


documents = Documents()
