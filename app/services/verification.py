"""Per-document verification for both sides of a distribution.

Sender-side ``missing``/``damaged`` outcomes are recorded but never block
the workflow. Receiver-side ones are discrepancies: they are reported back
without touching the rows unless the caller explicitly forces completion.
"""

import logging
import uuid
from dataclasses import dataclass

from app.errors import ValidationError
from app.models.distribution import (
    DISCREPANT_STATUSES,
    Distribution,
    DistributionDocument,
    DocumentKind,
    VerificationStatus,
)
from app.services.common import coerce_uuid
from app.services.documents import parse_kind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationEntry:
    document_kind: DocumentKind
    document_id: uuid.UUID
    status: VerificationStatus = VerificationStatus.verified
    notes: str | None = None

    @classmethod
    def from_input(cls, value) -> "VerificationEntry":
        if isinstance(value, VerificationEntry):
            return value
        if not isinstance(value, dict):
            value = value.model_dump()
        status = value.get("status") or VerificationStatus.verified
        if not isinstance(status, VerificationStatus):
            try:
                status = VerificationStatus(status)
            except ValueError:
                raise ValidationError(
                    f"Invalid verification status: {status}",
                    {"allowed": [s.value for s in VerificationStatus]},
                )
        return cls(
            document_kind=parse_kind(value.get("document_kind")),
            document_id=coerce_uuid(value.get("document_id")),
            status=status,
            notes=value.get("notes"),
        )

    @property
    def is_discrepancy(self) -> bool:
        return self.status in DISCREPANT_STATUSES

    def as_discrepancy(self) -> dict:
        return {
            "document_kind": self.document_kind.value,
            "document_id": str(self.document_id),
            "status": self.status.value,
            "notes": self.notes,
        }


def _match(
    distribution: Distribution, entries: list[VerificationEntry]
) -> list[tuple[VerificationEntry, DistributionDocument]]:
    rows = {(item.document_kind, item.document_id): item for item in distribution.documents}
    matched = []
    for entry in entries:
        row = rows.get((entry.document_kind, entry.document_id))
        if row is None:
            raise ValidationError(
                "Document is not part of this distribution",
                {
                    "document_kind": entry.document_kind.value,
                    "document_id": str(entry.document_id),
                },
            )
        matched.append((entry, row))
    return matched


def normalize(verifications) -> list[VerificationEntry]:
    return [VerificationEntry.from_input(v) for v in verifications or []]


class Verification:
    @staticmethod
    def apply_sender(distribution: Distribution, verifications) -> list[VerificationEntry]:
        entries = normalize(verifications)
        for entry, row in _match(distribution, entries):
            row.sender_verified = True
            row.sender_verification_status = entry.status
            row.sender_verification_notes = entry.notes
        flagged = sum(1 for e in entries if e.is_discrepancy)
        if flagged:
            logger.info(
                "Sender flagged %d documents on distribution %s",
                flagged,
                distribution.distribution_number,
            )
        return entries

    @staticmethod
    def apply_receiver(
        distribution: Distribution, verifications, force: bool = False
    ) -> tuple[list[dict], bool]:
        """Record receiver outcomes.

        Returns ``(discrepancies, applied)``. When discrepancies exist and
        ``force`` is false nothing is written and ``applied`` is False.
        """
        entries = normalize(verifications)
        matched = _match(distribution, entries)
        discrepancies = [e.as_discrepancy() for e in entries if e.is_discrepancy]
        if discrepancies and not force:
            return discrepancies, False
        for entry, row in matched:
            row.receiver_verified = True
            row.receiver_verification_status = entry.status
            row.receiver_verification_notes = entry.notes
        return discrepancies, True

    @staticmethod
    def summary(distribution: Distribution) -> dict:
        counts = {"total": 0, "verified": 0, "missing": 0, "damaged": 0}
        sender, receiver = [], []
        for item in distribution.documents:
            counts["total"] += 1
            status = item.receiver_verification_status
            if status is not None:
                counts[status.value] += 1
            if item.sender_verification_status in DISCREPANT_STATUSES:
                sender.append(_discrepancy_row(item, "sender"))
            if status in DISCREPANT_STATUSES:
                receiver.append(_discrepancy_row(item, "receiver"))
        return {
            "distribution_id": distribution.id,
            "distribution_number": distribution.distribution_number,
            "has_discrepancies": bool(distribution.has_discrepancies),
            **counts,
            "sender_discrepancies": sender,
            "receiver_discrepancies": receiver,
        }


def _discrepancy_row(item: DistributionDocument, side: str) -> dict:
    return {
        "document_kind": item.document_kind.value,
        "document_id": str(item.document_id),
        "status": getattr(item, f"{side}_verification_status").value,
        "notes": getattr(item, f"{side}_verification_notes"),
    }


verification = Verification()
