from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.schemas.common import ListResponse
from app.schemas.distribution_type import (
    DistributionTypeCreate,
    DistributionTypeRead,
    DistributionTypeUpdate,
)
from app.services.distribution_type import distribution_types

router = APIRouter(
    prefix="/distribution-types",
    tags=["distribution-types"],
    dependencies=[Depends(get_actor)],
)


@router.post(
    "", response_model=DistributionTypeRead, status_code=status.HTTP_201_CREATED
)
def create_distribution_type(
    payload: DistributionTypeCreate, db: Session = Depends(get_db)
):
    return distribution_types.create(db, payload)


@router.get("", response_model=ListResponse[DistributionTypeRead])
def list_distribution_types(
    order_by: str = Query(default="priority"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return distribution_types.list_response(db, order_by, order_dir, limit, offset)


@router.get("/{type_id}", response_model=DistributionTypeRead)
def get_distribution_type(type_id: str, db: Session = Depends(get_db)):
    return distribution_types.get(db, type_id)


@router.patch("/{type_id}", response_model=DistributionTypeRead)
def update_distribution_type(
    type_id: str, payload: DistributionTypeUpdate, db: Session = Depends(get_db)
):
    return distribution_types.update(db, type_id, payload)


@router.delete("/{type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_distribution_type(type_id: str, db: Session = Depends(get_db)):
    distribution_types.delete(db, type_id)
