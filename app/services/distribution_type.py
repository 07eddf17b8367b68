from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.distribution import Distribution, DistributionType
from app.schemas.distribution_type import (
    DistributionTypeCreate,
    DistributionTypeUpdate,
)
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

DEFAULT_DISTRIBUTION_TYPES = [
    {
        "name": "Normal",
        "code": "N",
        "color": "#6B7280",
        "priority": 1,
        "description": "Standard distribution with normal processing time",
    },
    {
        "name": "Urgent",
        "code": "U",
        "color": "#F59E0B",
        "priority": 2,
        "description": "Urgent distribution requiring immediate attention",
    },
    {
        "name": "Confidential",
        "code": "C",
        "color": "#EF4444",
        "priority": 3,
        "description": "Confidential distribution with restricted access",
    },
]


def _code_taken(db: Session, code: str, exclude_id=None) -> bool:
    query = db.query(DistributionType).filter(
        func.upper(DistributionType.code) == code.upper()
    )
    if exclude_id is not None:
        query = query.filter(DistributionType.id != coerce_uuid(exclude_id))
    return db.query(query.exists()).scalar()


class DistributionTypes(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: DistributionTypeCreate) -> DistributionType:
        data = payload.model_dump()
        data["code"] = data["code"].upper()
        if _code_taken(db, data["code"]):
            raise ValidationError(
                "Distribution type code already exists", {"code": data["code"]}
            )
        dist_type = DistributionType(**data)
        db.add(dist_type)
        db.commit()
        db.refresh(dist_type)
        logger.info("Created distribution type %s (%s)", dist_type.id, dist_type.code)
        return dist_type

    @staticmethod
    def get(db: Session, type_id: str) -> DistributionType:
        dist_type = db.get(DistributionType, coerce_uuid(type_id))
        if not dist_type:
            raise NotFoundError("Distribution type not found")
        return dist_type

    @staticmethod
    def get_by_code(db: Session, code: str) -> DistributionType:
        dist_type = (
            db.query(DistributionType)
            .filter(func.upper(DistributionType.code) == code.upper())
            .first()
        )
        if not dist_type:
            raise NotFoundError("Distribution type not found", {"code": code})
        return dist_type

    @staticmethod
    def list(
        db: Session,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[DistributionType]:
        query = db.query(DistributionType)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "name": DistributionType.name,
                "code": DistributionType.code,
                "priority": DistributionType.priority,
                "created_at": DistributionType.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(
        db: Session, type_id: str, payload: DistributionTypeUpdate
    ) -> DistributionType:
        dist_type = DistributionTypes.get(db, type_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("code"):
            data["code"] = data["code"].upper()
            if _code_taken(db, data["code"], exclude_id=dist_type.id):
                raise ValidationError(
                    "Distribution type code already exists", {"code": data["code"]}
                )
        for key, value in data.items():
            setattr(dist_type, key, value)
        db.commit()
        db.refresh(dist_type)
        logger.info("Updated distribution type %s", dist_type.id)
        return dist_type

    @staticmethod
    def delete(db: Session, type_id: str) -> None:
        dist_type = DistributionTypes.get(db, type_id)
        in_use = (
            db.query(Distribution)
            .filter(Distribution.type_id == dist_type.id)
            .count()
        )
        if in_use:
            raise ValidationError(
                "Cannot delete distribution type that is used by distributions",
                {"distributions": in_use},
            )
        db.delete(dist_type)
        db.commit()
        logger.info("Deleted distribution type %s", type_id)

    @staticmethod
    def validate_code(db: Session, code: str, exclude_id: str | None = None) -> bool:
        return not _code_taken(db, code, exclude_id)


def seed_distribution_types(db: Session) -> int:
    """Insert the default N/U/C types that are not present yet."""
    created = 0
    for defaults in DEFAULT_DISTRIBUTION_TYPES:
        if _code_taken(db, defaults["code"]):
            continue
        db.add(DistributionType(**defaults))
        created += 1
    db.commit()
    if created:
        logger.info("Seeded %d distribution types", created)
    return created


distribution_types = DistributionTypes()
