from datetime import date, time
from decimal import Decimal

import pytest

from reservations.models import Court
from reservations.rules import BookingPolicy
from reservations.schema import BookingErrorCode, CourtStatus, ErrorKind, UserRole

TODAY = date(2026, 3, 10)
TOMORROW = date(2026, 3, 11)


@pytest.fixture()
def court():
    return Court(
        id="court-1",
        name="Centre Court",
        status=CourtStatus.ACTIVE.value,
        opening_time=time(8, 0),
        closing_time=time(22, 0),
        slot_duration_minutes=60,
        base_price=Decimal("25.00"),
        member_price=Decimal("18.00"),
    )


def validate(court, day=TOMORROW, start=time(9, 0), end=time(10, 0), future_count=0):
    return BookingPolicy.validate_create(
        court,
        day,
        start,
        end,
        future_count=future_count,
        today=TODAY,
        max_future_reservations=5,
    )


def test_valid_request_is_allowed(court):
    result = validate(court)

    assert result.allowed
    assert result.error_code is None


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        (dict(start=time(10, 0), end=time(10, 0)), BookingErrorCode.INVALID_TIME_ORDER),
        (dict(start=time(11, 0), end=time(10, 0)), BookingErrorCode.INVALID_TIME_ORDER),
        (dict(day=date(2026, 3, 9)), BookingErrorCode.PAST_DATE),
        (dict(start=time(7, 0), end=time(8, 0)), BookingErrorCode.BEFORE_OPENING),
        (dict(start=time(21, 30), end=time(22, 30)), BookingErrorCode.AFTER_CLOSING),
        (dict(future_count=5), BookingErrorCode.QUOTA_EXCEEDED),
    ],
)
def test_each_rule_reports_its_code(court, kwargs, expected):
    result = validate(court, **kwargs)

    assert not result.allowed
    assert result.error_code == expected
    assert result.error_code.kind == ErrorKind.POLICY_VIOLATION


def test_today_is_bookable(court):
    assert validate(court, day=TODAY).allowed


def test_booking_up_to_closing_time_is_allowed(court):
    assert validate(court, start=time(21, 0), end=time(22, 0)).allowed


def test_maintenance_wins_over_every_other_failure(court):
    court.status = CourtStatus.MAINTENANCE.value

    result = validate(court, day=date(2026, 1, 1), start=time(23, 0), end=time(6, 0), future_count=99)

    assert result.error_code == BookingErrorCode.COURT_UNAVAILABLE


def test_time_order_is_checked_before_past_date(court):
    result = validate(court, day=date(2026, 1, 1), start=time(10, 0), end=time(9, 0))

    assert result.error_code == BookingErrorCode.INVALID_TIME_ORDER


def test_quota_is_checked_last(court):
    result = validate(court, start=time(6, 0), end=time(7, 0), future_count=5)

    assert result.error_code == BookingErrorCode.BEFORE_OPENING


def test_quota_below_limit_is_allowed(court):
    assert validate(court, future_count=4).allowed


@pytest.mark.parametrize(
    "role, expected",
    [
        (UserRole.MEMBER, Decimal("18.00")),
        (UserRole.STANDARD, Decimal("25.00")),
        (UserRole.ADMIN, Decimal("25.00")),
    ],
)
def test_price_depends_on_role(court, role, expected):
    assert BookingPolicy.price_for(court, role) == expected
