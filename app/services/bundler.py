"""Selection of the documents that go into a distribution.

Every requested document must currently sit at the creator's location.
Invoices pull in their linked additional documents when those are at the
same location; linked documents elsewhere are left out and reported as
``location_mismatch`` warnings instead of failing the request.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.distribution import DocumentKind
from app.services.documents import Documents, DocumentRef, kind_label, parse_kind
from app.services.location_ledger import LocationLedger

logger = logging.getLogger(__name__)


@dataclass
class BundleResult:
    documents: list[DocumentRef] = field(default_factory=list)
    auto_included: list[dict] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)


def _load_at_location(db: Session, ref: DocumentRef, location_code: str):
    label = kind_label(ref.kind)
    if not Documents.exists(db, ref.kind, ref.id):
        raise ValidationError(
            f"{label} with ID {ref.id} not found", ref.as_dict()
        )
    document = Documents.get(db, ref.kind, ref.id)
    current = LocationLedger.current_location(db, ref.kind, ref.id)
    if current != location_code:
        raise ValidationError(
            f"{label} {document.display_number} is not in your location "
            f"({location_code}). Current location: {current}",
            {**ref.as_dict(), "current_location": current},
        )
    return document


class DocumentBundler:
    @staticmethod
    def bundle(
        db: Session,
        document_kind,
        references: list[DocumentRef],
        location_code: str,
        exclude: set[DocumentRef] | None = None,
    ) -> BundleResult:
        """Validate ``references`` and expand them into the final bundle.

        ``exclude`` holds documents that are already part of the bundle;
        they are skipped without error.
        """
        kind = parse_kind(document_kind)
        seen: set[DocumentRef] = set(exclude or ())
        warned: set[DocumentRef] = set()
        result = BundleResult()

        for ref in references:
            if ref.kind != kind:
                raise ValidationError(
                    f"All documents must match the selected document kind: {kind.value}",
                    ref.as_dict(),
                )
            document = _load_at_location(db, ref, location_code)
            if ref not in seen:
                seen.add(ref)
                result.documents.append(ref)

            if kind != DocumentKind.invoice:
                continue

            for linked in Documents.related_documents(db, document.id):
                linked_ref = DocumentRef(DocumentKind.additional_document, linked.id)
                if linked_ref in seen:
                    continue
                linked_location = LocationLedger.current_location(
                    db, DocumentKind.additional_document, linked.id
                )
                if linked_location != location_code:
                    if linked_ref in warned:
                        continue
                    warned.add(linked_ref)
                    result.warnings.append(
                        {
                            "type": "location_mismatch",
                            "message": (
                                f"Additional document {linked.document_number} "
                                f"attached to invoice {document.invoice_number} has "
                                f"different location ({linked_location}). It will "
                                "not be included in the distribution."
                            ),
                            "document_kind": DocumentKind.additional_document.value,
                            "document_id": str(linked.id),
                            "document_number": linked.document_number,
                            "current_location": linked_location,
                        }
                    )
                    continue
                seen.add(linked_ref)
                result.documents.append(linked_ref)
                result.auto_included.append(
                    {
                        "document_kind": DocumentKind.additional_document.value,
                        "document_id": str(linked.id),
                        "document_number": linked.document_number,
                        "invoice_id": str(document.id),
                    }
                )

        logger.debug(
            "Bundled %d documents (%d auto-included, %d warnings) at %s",
            len(result.documents),
            len(result.auto_included),
            len(result.warnings),
            location_code,
        )
        return result


document_bundler = DocumentBundler()
