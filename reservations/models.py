"""SQLAlchemy models for the court reservation domain."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from reservations.schema import CourtStatus, ReservationStatus, UserRole

OVERLAP_VIOLATION = "reservation_overlap"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.STANDARD.value)


class Court(Base):
    __tablename__ = "courts"
    __table_args__ = (
        CheckConstraint("opening_time < closing_time", name="ck_courts_hours"),
        CheckConstraint("slot_duration_minutes > 0", name="ck_courts_slot_duration"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CourtStatus.ACTIVE.value, index=True)
    opening_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(8, 0))
    closing_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(22, 0))
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    member_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_reservations_time_order"),
        Index("ix_reservations_court_date_status", "court_id", "reservation_date", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    court_id: Mapped[str] = mapped_column(String, ForeignKey("courts.id"), nullable=False, index=True)
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value, index=True)
    paid_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    court: Mapped[Court] = relationship(lazy="joined", innerjoin=True)


# Store-level exclusivity for CONFIRMED rows. The application check runs under a
# lock first; these reject anything that slips past it.
_PG_OVERLAP_EXCLUSION = DDL(
    "CREATE EXTENSION IF NOT EXISTS btree_gist;"
    f" ALTER TABLE reservations ADD CONSTRAINT {OVERLAP_VIOLATION}"
    " EXCLUDE USING gist ("
    " court_id WITH =,"
    " tsrange(reservation_date + start_time, reservation_date + end_time, '[)') WITH &&"
    f" ) WHERE (status = '{ReservationStatus.CONFIRMED.value}')"
)

_SQLITE_OVERLAP_CONDITION = (
    f"NEW.status = '{ReservationStatus.CONFIRMED.value}' AND EXISTS ("
    " SELECT 1 FROM reservations r"
    " WHERE r.court_id = NEW.court_id"
    " AND r.reservation_date = NEW.reservation_date"
    f" AND r.status = '{ReservationStatus.CONFIRMED.value}'"
    " AND r.id != NEW.id"
    " AND r.start_time < NEW.end_time"
    " AND r.end_time > NEW.start_time)"
)

_SQLITE_INSERT_TRIGGER = DDL(
    "CREATE TRIGGER IF NOT EXISTS trg_reservations_overlap_insert"
    " BEFORE INSERT ON reservations"
    f" WHEN {_SQLITE_OVERLAP_CONDITION}"
    f" BEGIN SELECT RAISE(ABORT, '{OVERLAP_VIOLATION}'); END"
)

_SQLITE_UPDATE_TRIGGER = DDL(
    "CREATE TRIGGER IF NOT EXISTS trg_reservations_overlap_update"
    " BEFORE UPDATE OF status, court_id, reservation_date, start_time, end_time ON reservations"
    f" WHEN {_SQLITE_OVERLAP_CONDITION}"
    f" BEGIN SELECT RAISE(ABORT, '{OVERLAP_VIOLATION}'); END"
)

event.listen(Reservation.__table__, "after_create", _PG_OVERLAP_EXCLUSION.execute_if(dialect="postgresql"))
event.listen(Reservation.__table__, "after_create", _SQLITE_INSERT_TRIGGER.execute_if(dialect="sqlite"))
event.listen(Reservation.__table__, "after_create", _SQLITE_UPDATE_TRIGGER.execute_if(dialect="sqlite"))
