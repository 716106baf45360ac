import os
import tempfile
from datetime import datetime, time
from decimal import Decimal

# api_server and db.session read settings at import time.
_API_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="court-reservations-"), "api.db")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_API_DB_PATH}")
os.environ.setdefault("RESERVATIONS_API_KEY", "test-api-key")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reservations.engine import BookingConfig, BookingCoordinator
from reservations.models import Base, Court, User
from reservations.schema import CourtStatus, UserRole

NOW = datetime(2026, 3, 10, 10, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def seed_reference_data(session_factory) -> None:
    with session_factory() as db:
        with db.begin():
            db.add_all(
                [
                    User(id="u-standard", role=UserRole.STANDARD.value),
                    User(id="u-member", role=UserRole.MEMBER.value),
                    User(id="u-admin", role=UserRole.ADMIN.value),
                    User(id="u-other", role=UserRole.STANDARD.value),
                    Court(
                        id="court-1",
                        name="Centre Court",
                        status=CourtStatus.ACTIVE.value,
                        opening_time=time(8, 0),
                        closing_time=time(22, 0),
                        slot_duration_minutes=60,
                        base_price=Decimal("25.00"),
                        member_price=Decimal("18.00"),
                    ),
                    Court(
                        id="court-2",
                        name="Padel Two",
                        status=CourtStatus.ACTIVE.value,
                        opening_time=time(8, 0),
                        closing_time=time(9, 30),
                        slot_duration_minutes=60,
                        base_price=Decimal("30.00"),
                        member_price=Decimal("20.00"),
                    ),
                    Court(
                        id="court-closed",
                        name="Old Clay",
                        status=CourtStatus.MAINTENANCE.value,
                        opening_time=time(8, 0),
                        closing_time=time(20, 0),
                        slot_duration_minutes=60,
                        base_price=Decimal("20.00"),
                        member_price=Decimal("15.00"),
                    ),
                ]
            )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    seed_reference_data(factory)
    return factory


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def coordinator(session_factory, clock):
    return BookingCoordinator(
        session_factory,
        BookingConfig(max_future_reservations=5, cancellation_deadline_hours=2),
        clock=clock,
    )


@pytest.fixture()
def api_client(clock, monkeypatch):
    from fastapi.testclient import TestClient
    from sqlalchemy import delete

    import api_server
    from db.session import SessionLocal, init_db
    from reservations.models import Reservation

    init_db()
    with SessionLocal() as db:
        seeded = db.get(Court, "court-1") is not None
    if not seeded:
        seed_reference_data(SessionLocal)

    monkeypatch.setattr(api_server, "coordinator", BookingCoordinator(SessionLocal, BookingConfig(), clock=clock))
    with TestClient(api_server.app) as client:
        yield client

    with SessionLocal() as db:
        with db.begin():
            db.execute(delete(Reservation))


@pytest.fixture()
def file_session_factory(tmp_path):
    """File-backed database so several threads each get their own connection."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    seed_reference_data(factory)
    yield factory
    engine.dispose()
