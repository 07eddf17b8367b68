from datetime import datetime, timezone

import pytest

from app.errors import ValidationError
from app.models.distribution import (
    Distribution,
    DistributionSequence,
    DocumentKind,
)
from app.services.numbering import (
    distribution_numbers,
    format_number,
    number_prefix,
    parse_sequence,
)

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _make_distribution(db, number, dist_type, origin, destination, creator):
    distribution = Distribution(
        distribution_number=number,
        type_id=dist_type.id,
        origin_department_id=origin.id,
        destination_department_id=destination.id,
        document_kind=DocumentKind.invoice,
        created_by=creator.id,
    )
    db.add(distribution)
    db.commit()
    return distribution


class TestNumberFormat:
    def test_prefix(self) -> None:
        assert number_prefix("HQ", "N", NOW) == "25/HQ/N/"

    def test_prefix_requires_parts(self) -> None:
        with pytest.raises(ValidationError):
            number_prefix("", "N", NOW)
        with pytest.raises(ValidationError):
            number_prefix("HQ", "", NOW)

    def test_format_pads_to_five_digits(self) -> None:
        assert format_number("25/HQ/N/", 12) == "25/HQ/N/00012"

    def test_parse_sequence(self) -> None:
        assert parse_sequence("25/HQ/N/00012") == 12
        assert parse_sequence("garbage/xx") == 0


class TestNextNumber:
    def test_sequential_numbers(self, db_session) -> None:
        first = distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        second = distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        assert first == "25/HQ/N/00001"
        assert second == "25/HQ/N/00002"

    def test_prefixes_are_independent(self, db_session) -> None:
        distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        assert (
            distribution_numbers.next_number(db_session, "HQ", "U", NOW)
            == "25/HQ/U/00001"
        )
        assert (
            distribution_numbers.next_number(db_session, "WH1", "N", NOW)
            == "25/WH1/N/00001"
        )

    def test_counter_row_per_prefix(self, db_session) -> None:
        distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        db_session.commit()
        rows = db_session.query(DistributionSequence).all()
        assert len(rows) == 1
        assert rows[0].prefix == "25/HQ/N/"
        assert rows[0].current_value == 2

    def test_existing_numbers_are_not_reissued(
        self, db_session, dist_type, department, destination, person
    ) -> None:
        _make_distribution(
            db_session, "25/HQ/N/00007", dist_type, department, destination, person
        )
        number = distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        assert number == "25/HQ/N/00008"

    def test_rollback_releases_number(self, db_session) -> None:
        distribution_numbers.next_number(db_session, "HQ", "N", NOW)
        db_session.rollback()
        assert (
            distribution_numbers.next_number(db_session, "HQ", "N", NOW)
            == "25/HQ/N/00001"
        )


class TestIsAvailable:
    def test_available_and_taken(
        self, db_session, dist_type, department, destination, person
    ) -> None:
        existing = _make_distribution(
            db_session, "25/HQ/N/00001", dist_type, department, destination, person
        )
        assert distribution_numbers.is_available(db_session, "25/HQ/N/00002")
        assert not distribution_numbers.is_available(db_session, "25/HQ/N/00001")
        assert distribution_numbers.is_available(
            db_session, "25/HQ/N/00001", exclude_id=existing.id
        )
