"""Reservation status transitions and the mutations allowed on them."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from reservations.models import Reservation
from reservations.parsing import parse_status
from reservations.rules import RuleCheckResult
from reservations.schema import BookingErrorCode, ReservationStatus

# Users may only cancel a confirmed booking.
USER_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}

# Admin override accepts any status from any status, reopening included.
ADMIN_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    current: frozenset(ReservationStatus) for current in ReservationStatus
}


def reservation_start(reservation: Reservation) -> datetime:
    return datetime.combine(reservation.reservation_date, reservation.start_time)


class ReservationLifecycle:
    @staticmethod
    def create(
        *,
        user_id: str,
        court_id: str,
        reservation_date: date,
        start_time: time,
        end_time: time,
        paid_price: Decimal,
        notes: str | None = None,
    ) -> Reservation:
        return Reservation(
            user_id=user_id,
            court_id=court_id,
            reservation_date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            status=ReservationStatus.CONFIRMED.value,
            paid_price=paid_price,
            notes=notes,
        )

    @staticmethod
    def check_user_cancel(
        reservation: Reservation,
        requesting_user_id: str,
        *,
        now: datetime,
        deadline_hours: int,
    ) -> RuleCheckResult:
        if reservation.user_id != requesting_user_id:
            return RuleCheckResult.deny(BookingErrorCode.FORBIDDEN, "You are not allowed to cancel this reservation.")

        current = ReservationStatus(reservation.status)
        if ReservationStatus.CANCELLED not in USER_TRANSITIONS[current]:
            return RuleCheckResult.deny(BookingErrorCode.INVALID_STATE, "Only confirmed reservations can be cancelled.")

        deadline = reservation_start(reservation) - timedelta(hours=deadline_hours)
        if now > deadline:
            return RuleCheckResult.deny(
                BookingErrorCode.DEADLINE_PASSED,
                f"Reservations cannot be cancelled less than {deadline_hours} hours before the start.",
            )
        return RuleCheckResult.ok()

    @classmethod
    def user_cancel(
        cls,
        reservation: Reservation,
        requesting_user_id: str,
        *,
        now: datetime,
        deadline_hours: int,
    ) -> RuleCheckResult:
        check = cls.check_user_cancel(reservation, requesting_user_id, now=now, deadline_hours=deadline_hours)
        if check.allowed:
            reservation.status = ReservationStatus.CANCELLED.value
        return check

    @staticmethod
    def admin_cancel(reservation: Reservation) -> RuleCheckResult:
        reservation.status = ReservationStatus.CANCELLED.value
        return RuleCheckResult.ok()

    @staticmethod
    def admin_set_status(reservation: Reservation, raw_status: str | None) -> RuleCheckResult:
        new_status, parsed = parse_status(raw_status)
        if new_status is None:
            return parsed
        current = ReservationStatus(reservation.status)
        if new_status not in ADMIN_TRANSITIONS[current]:
            return RuleCheckResult.deny(
                BookingErrorCode.INVALID_STATUS,
                f"Transition {current.value} -> {new_status.value} is not allowed.",
            )
        reservation.status = new_status.value
        return RuleCheckResult.ok()
