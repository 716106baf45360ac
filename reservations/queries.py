"""Paged listings and usage statistics over reservations."""

from __future__ import annotations

import math
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from reservations.models import Court, Reservation
from reservations.schema import (
    CourtUsageStat,
    Page,
    ReservationStatus,
    ReservationView,
)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Reservations that count towards usage and revenue.
BILLABLE_STATUSES = (ReservationStatus.CONFIRMED.value, ReservationStatus.COMPLETED.value)


def normalize_paging(page: int | None, size: int | None) -> tuple[int, int]:
    page = max(page or 0, 0)
    size = size or DEFAULT_PAGE_SIZE
    return page, min(max(size, 1), MAX_PAGE_SIZE)


def to_view(reservation: Reservation) -> ReservationView:
    view = ReservationView.model_validate(reservation)
    view.court_name = reservation.court.name if reservation.court else None
    return view


def paginate(db: Session, stmt: Select, *, page: int, size: int) -> Page[ReservationView]:
    total = int(db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0)
    ordered = stmt.order_by(
        Reservation.reservation_date.desc(),
        Reservation.start_time.desc(),
        Reservation.id.asc(),
    )
    rows = db.scalars(ordered.offset(page * size).limit(size)).unique()
    total_pages = math.ceil(total / size) if total else 0
    return Page[ReservationView](
        content=[to_view(row) for row in rows],
        page_number=page,
        page_size=size,
        total_elements=total,
        total_pages=total_pages,
        last=page >= total_pages - 1,
    )


def user_reservations_query(user_id: str) -> Select:
    return select(Reservation).where(Reservation.user_id == user_id)


def filtered_reservations_query(
    *,
    court_id: str | None = None,
    reservation_date: date | None = None,
    status: ReservationStatus | None = None,
) -> Select:
    stmt = select(Reservation)
    if court_id:
        stmt = stmt.where(Reservation.court_id == court_id)
    if reservation_date is not None:
        stmt = stmt.where(Reservation.reservation_date == reservation_date)
    if status is not None:
        stmt = stmt.where(Reservation.status == status.value)
    return stmt


def count_between(db: Session, *, from_date: date, to_date: date, statuses: Iterable[str] = BILLABLE_STATUSES) -> int:
    stmt = (
        select(func.count())
        .select_from(Reservation)
        .where(
            Reservation.reservation_date.between(from_date, to_date),
            Reservation.status.in_(list(statuses)),
        )
    )
    return int(db.scalar(stmt) or 0)


def total_revenue(db: Session, *, from_date: date, to_date: date, statuses: Iterable[str] = BILLABLE_STATUSES) -> Decimal:
    stmt = select(func.coalesce(func.sum(Reservation.paid_price), 0)).where(
        Reservation.reservation_date.between(from_date, to_date),
        Reservation.status.in_(list(statuses)),
    )
    return Decimal(str(db.scalar(stmt) or 0)).quantize(Decimal("0.01"))


def court_usage(db: Session, *, from_date: date, to_date: date, statuses: Iterable[str] = BILLABLE_STATUSES) -> list[CourtUsageStat]:
    reservation_count = func.count(Reservation.id)
    stmt = (
        select(
            Court.id,
            Court.name,
            reservation_count,
            func.coalesce(func.sum(Reservation.paid_price), 0),
        )
        .select_from(Reservation)
        .join(Court, Court.id == Reservation.court_id)
        .where(
            Reservation.reservation_date.between(from_date, to_date),
            Reservation.status.in_(list(statuses)),
        )
        .group_by(Court.id, Court.name)
        .order_by(reservation_count.desc(), Court.name.asc())
    )
    return [
        CourtUsageStat(
            court_id=court_id,
            court_name=court_name,
            reservation_count=int(count),
            revenue=Decimal(str(revenue)).quantize(Decimal("0.01")),
        )
        for court_id, court_name, count, revenue in db.execute(stmt).all()
    ]
