import os
import uuid
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.distribution import DistributionType  # noqa: E402
from app.models.person import Department, Person  # noqa: E402
from app.services.identity import Actor  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT handling.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def pytest_configure(config):
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def process_event_delay():
    with patch("app.tasks.events.process_event.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_department(db, akronim: str, location_code: str | None) -> Department:
    department = Department(
        name=f"{akronim} Department",
        akronim=akronim,
        project="000H",
        location_code=location_code,
    )
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


def _make_person(db, department: Department | None, first_name: str = "Test") -> Person:
    person = Person(
        first_name=first_name,
        last_name="User",
        email=f"{first_name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
        department_id=department.id if department else None,
    )
    db.add(person)
    db.commit()
    db.refresh(person)
    return person


@pytest.fixture()
def department(db_session):
    return _make_department(db_session, "HQ", "HQ")


@pytest.fixture()
def destination(db_session):
    return _make_department(db_session, "WH1", "WH1")


@pytest.fixture()
def person(db_session, department):
    return _make_person(db_session, department, "Sender")


@pytest.fixture()
def receiver(db_session, destination):
    return _make_person(db_session, destination, "Receiver")


@pytest.fixture()
def actor(person):
    return Actor(user_id=person.id, department_id=person.department_id)


@pytest.fixture()
def receiver_actor(receiver):
    return Actor(user_id=receiver.id, department_id=receiver.department_id)


@pytest.fixture()
def auth_headers(person):
    return {"X-User-Id": str(person.id)}


@pytest.fixture()
def receiver_headers(receiver):
    return {"X-User-Id": str(receiver.id)}


@pytest.fixture()
def dist_type(db_session):
    dist_type = DistributionType(name="Normal", code="N", color="#6B7280", priority=1)
    db_session.add(dist_type)
    db_session.commit()
    db_session.refresh(dist_type)
    return dist_type
