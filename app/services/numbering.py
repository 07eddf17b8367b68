"""Distribution number allocation.

Numbers look like ``YY/LOC/TYPE/NNNNN`` (``25/HQ/N/00012``). Allocation for a
prefix is serialized on a ``distribution_sequences`` counter row locked with
``SELECT ... FOR UPDATE``; the first allocation for a prefix inserts the row
inside a savepoint and retries the locked read if another transaction won
the insert. The counter never drops below the highest suffix already stored
in ``distributions``, so numbers issued before the counter existed are never
handed out again.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.distribution import Distribution, DistributionSequence

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5


def number_prefix(location_code: str, type_code: str, now: datetime | None = None) -> str:
    if not location_code or not type_code:
        raise ValidationError("Location code and type code are required for numbering")
    year = (now or datetime.now(timezone.utc)).strftime("%y")
    return f"{year}/{location_code}/{type_code}/"


def format_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(distribution_number: str) -> int:
    try:
        return int(distribution_number.rsplit("/", 1)[-1])
    except ValueError:
        return 0


def _highest_existing(db: Session, prefix: str) -> int:
    numbers = db.scalars(
        select(Distribution.distribution_number).where(
            Distribution.distribution_number.startswith(prefix, autoescape=True)
        )
    ).all()
    return max((parse_sequence(n) for n in numbers), default=0)


def _lock_counter(db: Session, prefix: str) -> DistributionSequence | None:
    return db.execute(
        select(DistributionSequence)
        .where(DistributionSequence.prefix == prefix)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


class DistributionNumbers:
    @staticmethod
    def next_number(
        db: Session,
        location_code: str,
        type_code: str,
        now: datetime | None = None,
    ) -> str:
        """Allocate the next number for the prefix.

        Must run in the same transaction that inserts the distribution; the
        counter increment is released on rollback.
        """
        prefix = number_prefix(location_code, type_code, now)
        counter = _lock_counter(db, prefix)
        if counter is None:
            savepoint = db.begin_nested()
            try:
                counter = DistributionSequence(prefix=prefix, current_value=0)
                db.add(counter)
                db.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.debug("Sequence counter race for %s, retrying", prefix)
                counter = _lock_counter(db, prefix)
                if counter is None:
                    raise

        counter.current_value = max(counter.current_value, _highest_existing(db, prefix)) + 1
        db.flush()
        number = format_number(prefix, counter.current_value)
        logger.debug("Allocated distribution number %s", number)
        return number

    @staticmethod
    def is_available(db: Session, distribution_number: str, exclude_id=None) -> bool:
        query = db.query(Distribution).filter(
            Distribution.distribution_number == distribution_number
        )
        if exclude_id is not None:
            query = query.filter(Distribution.id != exclude_id)
        return not db.query(query.exists()).scalar()


distribution_numbers = DistributionNumbers()
