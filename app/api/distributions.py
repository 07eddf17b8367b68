from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.schemas.common import ListResponse
from app.schemas.distribution import (
    DeleteResponse,
    DiscrepancySummary,
    DistributionCreate,
    DistributionCreateResponse,
    DistributionHistoryRead,
    DistributionRead,
    DistributionUpdate,
    DocumentsAttach,
    ReceiverVerificationRequest,
    SenderVerificationRequest,
    Transmittal,
)
from app.services.distribution import distributions
from app.services.identity import Actor

router = APIRouter(prefix="/distributions", tags=["distributions"])


def _create_response(result) -> dict:
    return {
        "distribution": result.distribution,
        "warnings": result.warnings,
        "auto_included": result.auto_included,
    }


@router.post(
    "",
    response_model=DistributionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_distribution(
    payload: DistributionCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return _create_response(distributions.create(db, actor, payload))


@router.get("", response_model=ListResponse[DistributionRead])
def list_distributions(
    status_filter: str | None = Query(default=None, alias="status"),
    type_id: str | None = None,
    origin_department_id: str | None = None,
    destination_department_id: str | None = None,
    department_id: str | None = None,
    created_by: str | None = None,
    document_kind: str | None = None,
    search: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.list_response(
        db,
        status_filter,
        type_id,
        origin_department_id,
        destination_department_id,
        department_id,
        created_by,
        document_kind,
        search,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/by-number", response_model=DistributionRead)
def get_distribution_by_number(
    number: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.get_by_number(db, number)


@router.get("/number-available")
def number_available(
    number: str = Query(..., min_length=1),
    exclude_id: str | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return {"available": distributions.is_number_available(db, number, exclude_id)}


@router.get("/by-department/{department_id}", response_model=list[DistributionRead])
def list_by_department(
    department_id: str,
    direction: str = Query(default="both", pattern="^(origin|destination|both)$"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.list_by_department(db, department_id, direction)


@router.get("/by-status/{status_value}", response_model=list[DistributionRead])
def list_by_status(
    status_value: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.list_by_status(db, status_value)


@router.get("/by-user/{user_id}", response_model=list[DistributionRead])
def list_by_user(
    user_id: str,
    role: str = Query(
        default="all", pattern="^(creator|sender_verifier|receiver_verifier|all)$"
    ),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.list_by_user(db, user_id, role)


@router.get("/{distribution_id}", response_model=DistributionRead)
def get_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.get(db, distribution_id)


@router.patch("/{distribution_id}", response_model=DistributionRead)
def update_distribution(
    distribution_id: str,
    payload: DistributionUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.update(db, actor, distribution_id, payload)


@router.delete("/{distribution_id}", response_model=DeleteResponse)
def delete_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return {"deleted": distributions.delete(db, actor, distribution_id)}


@router.post("/{distribution_id}/documents", response_model=DistributionCreateResponse)
def attach_documents(
    distribution_id: str,
    payload: DocumentsAttach,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = distributions.attach_documents(
        db, actor, distribution_id, payload.documents
    )
    return _create_response(result)


@router.delete(
    "/{distribution_id}/documents/{document_kind}/{document_id}",
    response_model=DistributionRead,
)
def detach_document(
    distribution_id: str,
    document_kind: str,
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.detach_document(
        db, actor, distribution_id, document_kind, document_id
    )


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@router.post("/{distribution_id}/verify-sender", response_model=DistributionRead)
def verify_sender(
    distribution_id: str,
    payload: SenderVerificationRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.verify_sender(
        db, actor, distribution_id, payload.verifications, payload.notes
    )


@router.post("/{distribution_id}/send", response_model=DistributionRead)
def send_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.send(db, actor, distribution_id)


@router.post("/{distribution_id}/receive", response_model=DistributionRead)
def receive_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.receive(db, actor, distribution_id)


@router.post("/{distribution_id}/verify-receiver", response_model=DistributionRead)
def verify_receiver(
    distribution_id: str,
    payload: ReceiverVerificationRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.verify_receiver(
        db,
        actor,
        distribution_id,
        payload.verifications,
        payload.notes,
        force_complete_with_discrepancies=payload.force_complete_with_discrepancies,
    )


@router.post("/{distribution_id}/complete", response_model=DistributionRead)
def complete_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.complete(db, actor, distribution_id)


# ---------------------------------------------------------------------------
# History & reports
# ---------------------------------------------------------------------------


@router.get("/{distribution_id}/history", response_model=list[DistributionHistoryRead])
def get_history(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.get_history(db, distribution_id)


@router.get(
    "/{distribution_id}/discrepancy-summary", response_model=DiscrepancySummary
)
def discrepancy_summary(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.discrepancy_summary(db, distribution_id)


@router.get("/{distribution_id}/transmittal", response_model=Transmittal)
def transmittal(
    distribution_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return distributions.transmittal(db, distribution_id)
