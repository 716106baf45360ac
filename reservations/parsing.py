"""Total parsers for the string inputs accepted by the reservation API.

Every parser returns ``(value, RuleCheckResult)``; invalid input yields
``(None, <denied result>)`` instead of raising.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time

from reservations.rules import RuleCheckResult
from reservations.schema import BookingErrorCode, ReservationStatus, UserRole

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


def parse_date(raw: str | None) -> tuple[date | None, RuleCheckResult]:
    value = (raw or "").strip()
    if _DATE_PATTERN.match(value):
        try:
            return datetime.strptime(value, DATE_FORMAT).date(), RuleCheckResult.ok()
        except ValueError:
            pass
    return None, RuleCheckResult.deny(
        BookingErrorCode.INVALID_FORMAT,
        f"Invalid date format: {raw!r}. Use YYYY-MM-DD.",
    )


def parse_time(raw: str | None) -> tuple[time | None, RuleCheckResult]:
    value = (raw or "").strip()
    if _TIME_PATTERN.match(value):
        try:
            return datetime.strptime(value, TIME_FORMAT).time(), RuleCheckResult.ok()
        except ValueError:
            pass
    return None, RuleCheckResult.deny(
        BookingErrorCode.INVALID_FORMAT,
        f"Invalid time format: {raw!r}. Use HH:MM (24-hour).",
    )


def parse_status(raw: str | None) -> tuple[ReservationStatus | None, RuleCheckResult]:
    value = (raw or "").strip().upper()
    if value in ReservationStatus.__members__:
        return ReservationStatus[value], RuleCheckResult.ok()
    return None, RuleCheckResult.deny(BookingErrorCode.INVALID_STATUS, f"Invalid reservation status: {raw!r}.")


def parse_role(raw: str | None) -> tuple[UserRole | None, RuleCheckResult]:
    value = (raw or "").strip().upper()
    if value in UserRole.__members__:
        return UserRole[value], RuleCheckResult.ok()
    return None, RuleCheckResult.deny(BookingErrorCode.INVALID_FORMAT, f"Unknown user role: {raw!r}.")
