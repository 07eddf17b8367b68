import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base

# SQLite only autoincrements INTEGER primary keys.
_SerialPK = BigInteger().with_variant(Integer(), "sqlite")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DistributionStatus(enum.Enum):
    draft = "draft"
    verified_by_sender = "verified_by_sender"
    sent = "sent"
    received = "received"
    verified_by_receiver = "verified_by_receiver"
    completed = "completed"


class DocumentKind(enum.Enum):
    invoice = "invoice"
    additional_document = "additional_document"


class VerificationStatus(enum.Enum):
    verified = "verified"
    missing = "missing"
    damaged = "damaged"


DISCREPANT_STATUSES = frozenset({VerificationStatus.missing, VerificationStatus.damaged})


# ---------------------------------------------------------------------------
# Reference data: Distribution types
# ---------------------------------------------------------------------------


class DistributionType(Base):
    __tablename__ = "distribution_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6B7280")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    distributions = relationship("Distribution", back_populates="type")


# ---------------------------------------------------------------------------
# Tracked documents: Invoices & additional documents
# ---------------------------------------------------------------------------


additional_document_invoice = Table(
    "additional_document_invoice",
    Base.metadata,
    Column(
        "additional_document_id",
        UUID(as_uuid=True),
        ForeignKey("additional_documents.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "invoice_id",
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_cur_loc", "cur_loc"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_name: Mapped[str | None] = mapped_column(String(255))
    po_no: Mapped[str | None] = mapped_column(String(50))
    currency: Mapped[str | None] = mapped_column(String(3))
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    cur_loc: Mapped[str | None] = mapped_column(String(30))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    additional_documents = relationship(
        "AdditionalDocument",
        secondary=additional_document_invoice,
        back_populates="invoices",
        order_by="AdditionalDocument.document_number",
    )

    @property
    def display_number(self) -> str:
        return self.invoice_number


class AdditionalDocument(Base):
    __tablename__ = "additional_documents"
    __table_args__ = (Index("ix_additional_documents_cur_loc", "cur_loc"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_number: Mapped[str] = mapped_column(String(100), nullable=False)
    document_type_name: Mapped[str | None] = mapped_column(String(100))
    po_no: Mapped[str | None] = mapped_column(String(50))
    cur_loc: Mapped[str | None] = mapped_column(String(30))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    invoices = relationship(
        "Invoice",
        secondary=additional_document_invoice,
        back_populates="additional_documents",
    )

    @property
    def display_number(self) -> str:
        return self.document_number


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


class Distribution(Base):
    __tablename__ = "distributions"
    __table_args__ = (
        CheckConstraint(
            "origin_department_id <> destination_department_id",
            name="ck_distributions_origin_ne_destination",
        ),
        Index("ix_distributions_status_created_at", "status", "created_at"),
        Index(
            "ix_distributions_origin_destination",
            "origin_department_id",
            "destination_department_id",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    distribution_number: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False
    )
    type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("distribution_types.id"), nullable=False
    )
    origin_department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("departments.id"), nullable=False
    )
    destination_department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("departments.id"), nullable=False
    )
    document_kind: Mapped[DocumentKind] = mapped_column(
        Enum(DocumentKind), nullable=False
    )
    status: Mapped[DistributionStatus] = mapped_column(
        Enum(DistributionStatus), nullable=False, default=DistributionStatus.draft
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)

    sender_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    sender_verified_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    sender_verification_notes: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    receiver_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    receiver_verified_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    receiver_verification_notes: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    has_discrepancies: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    type = relationship("DistributionType", back_populates="distributions")
    origin_department = relationship(
        "Department", foreign_keys=[origin_department_id]
    )
    destination_department = relationship(
        "Department", foreign_keys=[destination_department_id]
    )
    creator = relationship("Person", foreign_keys=[created_by])
    sender_verifier = relationship("Person", foreign_keys=[sender_verified_by])
    receiver_verifier = relationship("Person", foreign_keys=[receiver_verified_by])
    documents = relationship(
        "DistributionDocument",
        back_populates="distribution",
        cascade="all, delete-orphan",
        order_by="DistributionDocument.created_at",
    )
    histories = relationship(
        "DistributionHistory",
        back_populates="distribution",
        order_by="DistributionHistory.id.desc()",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class DistributionDocument(Base):
    __tablename__ = "distribution_documents"
    __table_args__ = (
        UniqueConstraint(
            "distribution_id",
            "document_kind",
            "document_id",
            name="uq_distribution_documents_document",
        ),
        Index(
            "ix_distribution_documents_document",
            "document_kind",
            "document_id",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    distribution_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("distributions.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_kind: Mapped[DocumentKind] = mapped_column(
        Enum(DocumentKind), nullable=False
    )
    document_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    auto_included: Mapped[bool] = mapped_column(Boolean, default=False)

    sender_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    sender_verification_status: Mapped[VerificationStatus | None] = mapped_column(
        Enum(VerificationStatus)
    )
    sender_verification_notes: Mapped[str | None] = mapped_column(Text)
    receiver_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    receiver_verification_status: Mapped[VerificationStatus | None] = mapped_column(
        Enum(VerificationStatus)
    )
    receiver_verification_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    distribution = relationship("Distribution", back_populates="documents")


class DistributionSequence(Base):
    """Counter row per ``YY/LOC/TYPE`` number prefix.

    Locked with ``SELECT ... FOR UPDATE`` while a number is allocated so two
    transactions can never read the same last value.
    """

    __tablename__ = "distribution_sequences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    prefix: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# Audit: Distribution history
# ---------------------------------------------------------------------------


class DistributionHistory(Base):
    __tablename__ = "distribution_histories"
    __table_args__ = (
        Index("ix_distribution_histories_distribution_id", "distribution_id"),
    )

    id: Mapped[int] = mapped_column(_SerialPK, primary_key=True, autoincrement=True)
    distribution_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("distributions.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    notes: Mapped[str | None] = mapped_column(Text)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    distribution = relationship("Distribution", back_populates="histories")
    user = relationship("Person", foreign_keys=[user_id])


# ---------------------------------------------------------------------------
# Location ledger
# ---------------------------------------------------------------------------


class DocumentLocation(Base):
    __tablename__ = "document_locations"
    __table_args__ = (
        Index("ix_document_locations_document", "document_kind", "document_id"),
        Index("ix_document_locations_location_moved_at", "location_code", "moved_at"),
        Index("ix_document_locations_distribution_id", "distribution_id"),
    )

    id: Mapped[int] = mapped_column(_SerialPK, primary_key=True, autoincrement=True)
    document_kind: Mapped[DocumentKind] = mapped_column(
        Enum(DocumentKind), nullable=False
    )
    document_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    location_code: Mapped[str] = mapped_column(String(30), nullable=False)
    moved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id", ondelete="SET NULL")
    )
    moved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    distribution_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("distributions.id", ondelete="SET NULL")
    )
    reason: Mapped[str | None] = mapped_column(Text)

    mover = relationship("Person", foreign_keys=[moved_by])
    distribution = relationship("Distribution")
