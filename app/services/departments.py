import logging

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.person import Department, Person
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class Departments:
    @staticmethod
    def get(db: Session, department_id) -> Department:
        department = db.get(Department, coerce_uuid(department_id))
        if not department:
            raise NotFoundError(
                "Department not found", {"department_id": str(department_id)}
            )
        return department

    @staticmethod
    def location_code(db: Session, department_id) -> str:
        department = Departments.get(db, department_id)
        if not department.location_code:
            raise ValidationError(
                f"Department {department.akronim} has no location code",
                {"department_id": str(department.id)},
            )
        return department.location_code

    @staticmethod
    def members(db: Session, department_id) -> list[Person]:
        return (
            db.query(Person)
            .filter(
                Person.department_id == coerce_uuid(department_id),
                Person.is_active.is_(True),
            )
            .all()
        )


departments = Departments()
