"""Rule evaluation logic for court reservations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from reservations.models import Court
from reservations.schema import BookingErrorCode, CourtStatus, UserRole


@dataclass
class RuleCheckResult:
    allowed: bool
    error_code: BookingErrorCode | None = None
    reason: str | None = None

    @classmethod
    def ok(cls) -> "RuleCheckResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, error_code: BookingErrorCode, reason: str) -> "RuleCheckResult":
        return cls(allowed=False, error_code=error_code, reason=reason)


class BookingPolicy:
    """Stateless checks applied to a new reservation before it is committed.

    Checks run in a fixed order and the first failure wins, so callers always
    see the same error for the same request.
    """

    @staticmethod
    def check_court_active(court: Court) -> RuleCheckResult:
        if court.status != CourtStatus.ACTIVE.value:
            return RuleCheckResult.deny(BookingErrorCode.COURT_UNAVAILABLE, "Court is currently under maintenance.")
        return RuleCheckResult.ok()

    @staticmethod
    def check_time_order(start_time: time, end_time: time) -> RuleCheckResult:
        if end_time <= start_time:
            return RuleCheckResult.deny(BookingErrorCode.INVALID_TIME_ORDER, "End time must be after start time.")
        return RuleCheckResult.ok()

    @staticmethod
    def check_not_past(reservation_date: date, today: date) -> RuleCheckResult:
        if reservation_date < today:
            return RuleCheckResult.deny(BookingErrorCode.PAST_DATE, "Cannot book a date in the past.")
        return RuleCheckResult.ok()

    @staticmethod
    def check_operating_window(court: Court, start_time: time, end_time: time) -> RuleCheckResult:
        if start_time < court.opening_time:
            return RuleCheckResult.deny(
                BookingErrorCode.BEFORE_OPENING,
                f"Start time cannot be before the court opens ({court.opening_time.strftime('%H:%M')}).",
            )
        if end_time > court.closing_time:
            return RuleCheckResult.deny(
                BookingErrorCode.AFTER_CLOSING,
                f"End time cannot be after the court closes ({court.closing_time.strftime('%H:%M')}).",
            )
        return RuleCheckResult.ok()

    @staticmethod
    def check_quota(future_count: int, max_future_reservations: int) -> RuleCheckResult:
        if future_count >= max_future_reservations:
            return RuleCheckResult.deny(
                BookingErrorCode.QUOTA_EXCEEDED,
                f"Maximum number of future reservations reached ({max_future_reservations}).",
            )
        return RuleCheckResult.ok()

    @classmethod
    def validate_create(
        cls,
        court: Court,
        reservation_date: date,
        start_time: time,
        end_time: time,
        *,
        future_count: int,
        today: date,
        max_future_reservations: int,
    ) -> RuleCheckResult:
        checks = (
            lambda: cls.check_court_active(court),
            lambda: cls.check_time_order(start_time, end_time),
            lambda: cls.check_not_past(reservation_date, today),
            lambda: cls.check_operating_window(court, start_time, end_time),
            lambda: cls.check_quota(future_count, max_future_reservations),
        )
        for check in checks:
            result = check()
            if not result.allowed:
                return result
        return RuleCheckResult.ok()

    @staticmethod
    def price_for(court: Court, role: UserRole) -> Decimal:
        return court.member_price if role == UserRole.MEMBER else court.base_price
