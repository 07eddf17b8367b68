import uuid

import pytest

from app.errors import NotFoundError, ValidationError
from app.models.distribution import Distribution, DistributionStatus, DocumentKind
from app.schemas.distribution_type import (
    DistributionTypeCreate,
    DistributionTypeUpdate,
)
from app.services.distribution_type import (
    DEFAULT_DISTRIBUTION_TYPES,
    distribution_types,
    seed_distribution_types,
)


class TestDistributionTypes:
    def test_create_uppercases_code(self, db_session) -> None:
        dist_type = distribution_types.create(
            db_session, DistributionTypeCreate(name="Express", code="x", priority=2)
        )
        assert dist_type.code == "X"
        assert dist_type.color == "#6B7280"
        assert distribution_types.get_by_code(db_session, "x").id == dist_type.id

    def test_duplicate_code_rejected(self, db_session, dist_type) -> None:
        with pytest.raises(ValidationError):
            distribution_types.create(
                db_session, DistributionTypeCreate(name="Another", code="n")
            )

    def test_validate_code(self, db_session, dist_type) -> None:
        assert distribution_types.validate_code(db_session, "N") is False
        assert distribution_types.validate_code(db_session, "N", dist_type.id) is True
        assert distribution_types.validate_code(db_session, "Z") is True

    def test_get_missing(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            distribution_types.get(db_session, str(uuid.uuid4()))

    def test_update(self, db_session, dist_type) -> None:
        updated = distribution_types.update(
            db_session,
            str(dist_type.id),
            DistributionTypeUpdate(name="Normal delivery", color="#000000"),
        )
        assert updated.name == "Normal delivery"
        assert updated.color == "#000000"
        assert updated.code == "N"

    def test_update_to_taken_code(self, db_session, dist_type) -> None:
        other = distribution_types.create(
            db_session, DistributionTypeCreate(name="Urgent", code="U", priority=2)
        )
        with pytest.raises(ValidationError):
            distribution_types.update(
                db_session, str(other.id), DistributionTypeUpdate(code="n")
            )

    def test_list_ordered_by_priority(self, db_session) -> None:
        seed_distribution_types(db_session)
        items = distribution_types.list(db_session, "priority", "asc", 10, 0)
        assert [t.code for t in items] == ["N", "U", "C"]
        with pytest.raises(ValidationError):
            distribution_types.list(db_session, "color", "asc", 10, 0)

    def test_seed_is_idempotent(self, db_session, dist_type) -> None:
        assert seed_distribution_types(db_session) == len(DEFAULT_DISTRIBUTION_TYPES) - 1
        assert seed_distribution_types(db_session) == 0

    def test_delete_unused(self, db_session, dist_type) -> None:
        distribution_types.delete(db_session, str(dist_type.id))
        with pytest.raises(NotFoundError):
            distribution_types.get(db_session, str(dist_type.id))

    def test_delete_in_use_rejected(
        self, db_session, dist_type, department, destination, person
    ) -> None:
        db_session.add(
            Distribution(
                distribution_number="25/HQ/N/00001",
                type_id=dist_type.id,
                origin_department_id=department.id,
                destination_department_id=destination.id,
                document_kind=DocumentKind.invoice,
                status=DistributionStatus.draft,
                created_by=person.id,
            )
        )
        db_session.commit()
        with pytest.raises(ValidationError) as exc:
            distribution_types.delete(db_session, str(dist_type.id))
        assert exc.value.details == {"distributions": 1}
