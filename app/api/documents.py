from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.schemas.distribution import (
    CurrentLocation,
    DocumentInLocation,
    DocumentLocationRead,
    DocumentMoveRequest,
    MovementStatistic,
)
from app.services.documents import make_ref
from app.services.identity import Actor
from app.services.location_ledger import location_ledger

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/in-location/{location_code}", response_model=list[DocumentInLocation])
def documents_in_location(
    location_code: str,
    document_kind: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return location_ledger.documents_in_location(
        db, location_code, kind=document_kind, limit=limit
    )


@router.get("/movement-statistics", response_model=list[MovementStatistic])
def movement_statistics(
    days: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return location_ledger.movement_statistics(db, days)


@router.post("/tracking/initialize")
def initialize_tracking(
    db: Session = Depends(get_db), actor: Actor = Depends(get_actor)
):
    return {"initialized": location_ledger.initialize_tracking(db)}


@router.get("/{document_kind}/{document_id}/location", response_model=CurrentLocation)
def current_location(
    document_kind: str,
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ref = make_ref(document_kind, document_id)
    return {
        "document_kind": ref.kind,
        "document_id": ref.id,
        "location_code": location_ledger.current_location(db, ref.kind, ref.id),
    }


@router.get(
    "/{document_kind}/{document_id}/location-history",
    response_model=list[DocumentLocationRead],
)
def location_history(
    document_kind: str,
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return location_ledger.history(db, document_kind, document_id)


@router.post(
    "/{document_kind}/{document_id}/move", response_model=DocumentLocationRead
)
def move_document(
    document_kind: str,
    document_id: str,
    payload: DocumentMoveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return location_ledger.move(
        db,
        document_kind,
        document_id,
        payload.location_code,
        moved_by=actor.user_id,
        reason=payload.reason,
    )
