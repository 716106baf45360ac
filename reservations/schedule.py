"""Day and week availability projections for a court."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Mapping

from reservations.availability import ACTIVE_STATUS, intervals_overlap
from reservations.models import Court, Reservation
from reservations.schema import DaySchedule, TimeSlot
from reservations.slots import build_slot_grid

DAYS_PER_WEEK = 7


def project_day(court: Court, day: date, active_reservations: Iterable[Reservation]) -> DaySchedule:
    confirmed = sorted(
        (reservation for reservation in active_reservations if reservation.status == ACTIVE_STATUS),
        key=lambda reservation: reservation.start_time,
    )
    grid = build_slot_grid(
        opening_time=court.opening_time,
        closing_time=court.closing_time,
        slot_duration_minutes=court.slot_duration_minutes,
    )

    slots: list[TimeSlot] = []
    for slot_start, slot_end in grid:
        occupying = next(
            (r for r in confirmed if intervals_overlap(r.start_time, r.end_time, slot_start, slot_end)),
            None,
        )
        slots.append(
            TimeSlot(
                start_time=slot_start,
                end_time=slot_end,
                available=occupying is None,
                reservation_id=occupying.id if occupying else None,
            )
        )

    return DaySchedule(date=day, court_id=court.id, court_name=court.name, slots=slots)


def week_dates(start_date: date) -> list[date]:
    return [start_date + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]


def project_week(
    court: Court,
    start_date: date,
    reservations_by_day: Mapping[date, Iterable[Reservation]],
) -> list[DaySchedule]:
    return [project_day(court, day, reservations_by_day.get(day, ())) for day in week_dates(start_date)]
