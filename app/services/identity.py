import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.person import Person
from app.services.common import coerce_uuid


@dataclass(frozen=True)
class Actor:
    """The person performing an operation and the department they act for."""

    user_id: uuid.UUID
    department_id: uuid.UUID | None


def resolve_actor(db: Session, user_id) -> Actor:
    person = db.get(Person, coerce_uuid(user_id))
    if not person or not person.is_active:
        raise NotFoundError("User not found", {"user_id": str(user_id)})
    return Actor(user_id=person.id, department_id=person.department_id)
