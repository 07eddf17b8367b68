from app.models.person import Department, Person  # noqa: F401
from app.models.distribution import (  # noqa: F401
    AdditionalDocument,
    DISCREPANT_STATUSES,
    Distribution,
    DistributionDocument,
    DistributionHistory,
    DistributionSequence,
    DistributionStatus,
    DistributionType,
    DocumentKind,
    DocumentLocation,
    Invoice,
    VerificationStatus,
    additional_document_invoice,
)
from app.models.notification import Notification  # noqa: F401
