import pytest
from sqlalchemy.exc import IntegrityError

from app.models.distribution import (
    DISCREPANT_STATUSES,
    AdditionalDocument,
    Distribution,
    DistributionDocument,
    DistributionSequence,
    DistributionStatus,
    DistributionType,
    DocumentKind,
    Invoice,
    VerificationStatus,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_distribution(db_session, dist_type, department, destination, person, number):
    distribution = Distribution(
        distribution_number=number,
        type_id=dist_type.id,
        origin_department_id=department.id,
        destination_department_id=destination.id,
        document_kind=DocumentKind.invoice,
        created_by=person.id,
    )
    db_session.add(distribution)
    db_session.flush()
    return distribution


# ---------------------------------------------------------------------------
# Enum Tests
# ---------------------------------------------------------------------------


class TestEnums:
    def test_distribution_status_values(self) -> None:
        assert [s.value for s in DistributionStatus] == [
            "draft",
            "verified_by_sender",
            "sent",
            "received",
            "verified_by_receiver",
            "completed",
        ]

    def test_verification_status_values(self) -> None:
        assert VerificationStatus.verified.value == "verified"
        assert DISCREPANT_STATUSES == {
            VerificationStatus.missing,
            VerificationStatus.damaged,
        }

    def test_document_kind_values(self) -> None:
        assert DocumentKind.invoice.value == "invoice"
        assert DocumentKind.additional_document.value == "additional_document"
        assert len(DocumentKind) == 2


# ---------------------------------------------------------------------------
# Model Tests
# ---------------------------------------------------------------------------


class TestDistribution:
    def test_defaults(self, db_session, dist_type, department, destination, person) -> None:
        distribution = _make_distribution(
            db_session, dist_type, department, destination, person, "25/HQ/N/00001"
        )
        assert distribution.status == DistributionStatus.draft
        assert distribution.has_discrepancies is False
        assert distribution.is_deleted is False
        assert distribution.type.code == "N"
        assert distribution.creator.id == person.id

    def test_number_is_unique(
        self, db_session, dist_type, department, destination, person
    ) -> None:
        _make_distribution(
            db_session, dist_type, department, destination, person, "25/HQ/N/00001"
        )
        with pytest.raises(IntegrityError):
            _make_distribution(
                db_session, dist_type, department, destination, person, "25/HQ/N/00001"
            )
        db_session.rollback()

    def test_origin_must_differ_from_destination(
        self, db_session, dist_type, department, person
    ) -> None:
        with pytest.raises(IntegrityError):
            _make_distribution(
                db_session, dist_type, department, department, person, "25/HQ/N/00001"
            )
        db_session.rollback()

    def test_document_attached_once(
        self, db_session, dist_type, department, destination, person
    ) -> None:
        distribution = _make_distribution(
            db_session, dist_type, department, destination, person, "25/HQ/N/00001"
        )
        invoice = Invoice(invoice_number="INV-001", cur_loc="HQ")
        db_session.add(invoice)
        db_session.flush()
        for _ in range(2):
            distribution.documents.append(
                DistributionDocument(
                    document_kind=DocumentKind.invoice, document_id=invoice.id
                )
            )
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()


class TestDocuments:
    def test_invoice_links(self, db_session) -> None:
        invoice = Invoice(invoice_number="INV-001", cur_loc="HQ")
        document = AdditionalDocument(document_number="DO-001", cur_loc="HQ")
        document.invoices.append(invoice)
        db_session.add(document)
        db_session.commit()
        db_session.refresh(invoice)
        assert [d.document_number for d in invoice.additional_documents] == ["DO-001"]
        assert invoice.display_number == "INV-001"
        assert document.display_number == "DO-001"


class TestReferenceData:
    def test_type_code_unique(self, db_session, dist_type) -> None:
        db_session.add(DistributionType(name="Duplicate", code="N"))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()

    def test_sequence_prefix_unique(self, db_session) -> None:
        db_session.add(DistributionSequence(prefix="25/HQ/N/", current_value=1))
        db_session.flush()
        db_session.add(DistributionSequence(prefix="25/HQ/N/", current_value=2))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()
