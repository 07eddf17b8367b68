from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.distribution import (
    DistributionStatus,
    DocumentKind,
    VerificationStatus,
)
from app.schemas.distribution_type import DistributionTypeRead


# ---------------------------------------------------------------------------
# Document references
# ---------------------------------------------------------------------------


class DocumentReference(BaseModel):
    document_kind: DocumentKind
    document_id: UUID


class DocumentVerification(DocumentReference):
    status: VerificationStatus = VerificationStatus.verified
    notes: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


class DistributionCreate(BaseModel):
    type_id: UUID
    destination_department_id: UUID
    document_kind: DocumentKind
    documents: list[DocumentReference] = Field(min_length=1)
    notes: str | None = None
    # Defaults to the acting user's department.
    origin_department_id: UUID | None = None

    @model_validator(mode="after")
    def _documents_match_kind(self) -> "DistributionCreate":
        for ref in self.documents:
            if ref.document_kind != self.document_kind:
                raise ValueError(
                    "All documents must match the selected document kind"
                )
        return self


class DistributionUpdate(BaseModel):
    type_id: UUID | None = None
    destination_department_id: UUID | None = None
    notes: str | None = None


class DocumentsAttach(BaseModel):
    documents: list[DocumentReference] = Field(min_length=1)


class SenderVerificationRequest(BaseModel):
    verifications: list[DocumentVerification] = Field(default_factory=list)
    notes: str | None = None


class ReceiverVerificationRequest(BaseModel):
    verifications: list[DocumentVerification] = Field(default_factory=list)
    notes: str | None = None
    force_complete_with_discrepancies: bool = False


class DistributionDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_kind: DocumentKind
    document_id: UUID
    auto_included: bool
    sender_verified: bool
    sender_verification_status: VerificationStatus | None = None
    sender_verification_notes: str | None = None
    receiver_verified: bool
    receiver_verification_status: VerificationStatus | None = None
    receiver_verification_notes: str | None = None


class DistributionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    distribution_number: str
    type_id: UUID
    type: DistributionTypeRead | None = None
    origin_department_id: UUID
    destination_department_id: UUID
    document_kind: DocumentKind
    status: DistributionStatus
    created_by: UUID
    notes: str | None = None
    sender_verified_at: datetime | None = None
    sender_verified_by: UUID | None = None
    sender_verification_notes: str | None = None
    sent_at: datetime | None = None
    received_at: datetime | None = None
    receiver_verified_at: datetime | None = None
    receiver_verified_by: UUID | None = None
    receiver_verification_notes: str | None = None
    completed_at: datetime | None = None
    has_discrepancies: bool
    documents: list[DistributionDocumentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class BundleWarning(BaseModel):
    type: str
    message: str
    document_kind: DocumentKind
    document_id: UUID
    document_number: str
    current_location: str | None = None


class AutoIncludedDocument(BaseModel):
    document_kind: DocumentKind
    document_id: UUID
    document_number: str
    invoice_id: UUID


class DistributionCreateResponse(BaseModel):
    distribution: DistributionRead
    warnings: list[BundleWarning] = Field(default_factory=list)
    auto_included: list[AutoIncludedDocument] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    deleted: bool


# ---------------------------------------------------------------------------
# History & reports
# ---------------------------------------------------------------------------


class DistributionHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    distribution_id: UUID
    action: str
    user_id: UUID | None = None
    notes: str | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata_")
    created_at: datetime


class Discrepancy(BaseModel):
    document_kind: DocumentKind
    document_id: UUID
    status: VerificationStatus
    notes: str | None = None


class DiscrepancySummary(BaseModel):
    distribution_id: UUID
    distribution_number: str
    has_discrepancies: bool
    total: int
    verified: int
    missing: int
    damaged: int
    sender_discrepancies: list[Discrepancy]
    receiver_discrepancies: list[Discrepancy]


class TransmittalDepartment(BaseModel):
    id: UUID
    name: str
    akronim: str
    location_code: str | None = None


class TransmittalDocument(BaseModel):
    document_kind: DocumentKind
    document_id: UUID
    document_number: str
    auto_included: bool
    sender_verification_status: VerificationStatus | None = None
    receiver_verification_status: VerificationStatus | None = None


class Transmittal(BaseModel):
    distribution_number: str
    type_name: str
    type_code: str
    status: DistributionStatus
    document_kind: DocumentKind
    origin: TransmittalDepartment
    destination: TransmittalDepartment
    created_by: str
    notes: str | None = None
    created_at: datetime
    sender_verified_at: datetime | None = None
    sent_at: datetime | None = None
    received_at: datetime | None = None
    receiver_verified_at: datetime | None = None
    completed_at: datetime | None = None
    documents: list[TransmittalDocument]


# ---------------------------------------------------------------------------
# Location ledger
# ---------------------------------------------------------------------------


class DocumentLocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_kind: DocumentKind
    document_id: UUID
    location_code: str
    moved_by: UUID | None = None
    moved_at: datetime
    distribution_id: UUID | None = None
    reason: str | None = None


class CurrentLocation(BaseModel):
    document_kind: DocumentKind
    document_id: UUID
    location_code: str | None = None


class DocumentMoveRequest(BaseModel):
    location_code: str = Field(min_length=1, max_length=30)
    reason: str | None = None


class DocumentInLocation(BaseModel):
    document_kind: DocumentKind
    document_id: UUID
    document_number: str
    location_code: str


class MovementStatistic(BaseModel):
    location_code: str
    movements: int
