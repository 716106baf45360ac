"""Overlap checks and court-day reservation queries."""

from __future__ import annotations

from datetime import date, time

from sqlalchemy import Select, func, or_, and_, select
from sqlalchemy.orm import Session

from reservations.models import Reservation
from reservations.schema import ReservationStatus

ACTIVE_STATUS = ReservationStatus.CONFIRMED.value


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and start_b < end_a


def overlap_query(
    *,
    court_id: str,
    reservation_date: date,
    start_time: time,
    end_time: time,
    exclude_reservation_id: str | None = None,
) -> Select:
    stmt = select(Reservation.id).where(
        Reservation.court_id == court_id,
        Reservation.reservation_date == reservation_date,
        Reservation.status == ACTIVE_STATUS,
        Reservation.start_time < end_time,
        Reservation.end_time > start_time,
    )
    if exclude_reservation_id:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)
    return stmt


def has_conflict(
    db: Session,
    *,
    court_id: str,
    reservation_date: date,
    start_time: time,
    end_time: time,
    exclude_reservation_id: str | None = None,
    lock_rows: bool = False,
) -> bool:
    stmt = overlap_query(
        court_id=court_id,
        reservation_date=reservation_date,
        start_time=start_time,
        end_time=end_time,
        exclude_reservation_id=exclude_reservation_id,
    )
    if lock_rows:
        stmt = stmt.with_for_update()
    return db.execute(stmt.limit(1)).first() is not None


def active_reservations(db: Session, *, court_id: str, reservation_date: date) -> list[Reservation]:
    stmt = (
        select(Reservation)
        .where(
            Reservation.court_id == court_id,
            Reservation.reservation_date == reservation_date,
            Reservation.status == ACTIVE_STATUS,
        )
        .order_by(Reservation.start_time.asc())
    )
    return list(db.scalars(stmt))


def count_future_confirmed(db: Session, *, user_id: str, today: date, now_time: time) -> int:
    stmt = (
        select(func.count())
        .select_from(Reservation)
        .where(
            Reservation.user_id == user_id,
            Reservation.status == ACTIVE_STATUS,
            or_(
                Reservation.reservation_date > today,
                and_(Reservation.reservation_date == today, Reservation.start_time > now_time),
            ),
        )
    )
    return int(db.scalar(stmt) or 0)
