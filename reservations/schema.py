"""Pydantic schemas and enums for reservation and schedule flows."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class CourtStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"


class UserRole(str, Enum):
    STANDARD = "STANDARD"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    INVALID_FORMAT = "InvalidFormat"
    POLICY_VIOLATION = "PolicyViolation"
    SLOT_TAKEN = "SlotTaken"
    FORBIDDEN = "Forbidden"
    INVALID_STATE = "InvalidState"
    DEADLINE_PASSED = "DeadlinePassed"
    INVALID_STATUS = "InvalidStatus"
    STORAGE_ERROR = "StorageError"


class BookingErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    COURT_UNAVAILABLE = "COURT_UNAVAILABLE"
    INVALID_TIME_ORDER = "INVALID_TIME_ORDER"
    PAST_DATE = "PAST_DATE"
    BEFORE_OPENING = "BEFORE_OPENING"
    AFTER_CLOSING = "AFTER_CLOSING"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SLOT_TAKEN = "SLOT_TAKEN"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    DEADLINE_PASSED = "DEADLINE_PASSED"
    INVALID_STATUS = "INVALID_STATUS"
    STORAGE_ERROR = "STORAGE_ERROR"

    @property
    def kind(self) -> ErrorKind:
        if self in POLICY_VIOLATIONS:
            return ErrorKind.POLICY_VIOLATION
        return ErrorKind[self.name]


POLICY_VIOLATIONS = frozenset(
    {
        BookingErrorCode.COURT_UNAVAILABLE,
        BookingErrorCode.INVALID_TIME_ORDER,
        BookingErrorCode.PAST_DATE,
        BookingErrorCode.BEFORE_OPENING,
        BookingErrorCode.AFTER_CLOSING,
        BookingErrorCode.QUOTA_EXCEEDED,
    }
)


class ReservationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    court_id: str = Field(min_length=1)
    date: str = Field(description="Reservation date, YYYY-MM-DD")
    start_time: str = Field(description="Start time, HH:MM (24-hour)")
    end_time: str = Field(description="End time, HH:MM (24-hour)")
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value or None


class UserReservationRequest(ReservationRequest):
    user_id: str = Field(min_length=1)


class UserCancelRequest(BaseModel):
    user_id: str = Field(min_length=1)


class ReservationStatusUpdateRequest(BaseModel):
    status: str = Field(min_length=1)


class ReservationFilters(BaseModel):
    court_id: Optional[str] = None
    reservation_date: Optional[date] = None
    status: Optional[str] = None


class ReservationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    court_id: str
    court_name: Optional[str] = None
    reservation_date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    paid_price: Decimal
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TimeSlot(BaseModel):
    start_time: time
    end_time: time
    available: bool
    reservation_id: Optional[str] = None


class DaySchedule(BaseModel):
    date: date
    court_id: str
    court_name: str
    slots: list[TimeSlot]


class ReservationResult(BaseModel):
    success: bool
    error_code: Optional[BookingErrorCode] = None
    reason: Optional[str] = None
    reservation: Optional[ReservationView] = None

    @field_validator("reason")
    @classmethod
    def normalize_reason(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ScheduleResult(BaseModel):
    success: bool
    error_code: Optional[BookingErrorCode] = None
    reason: Optional[str] = None
    schedule: Optional[DaySchedule] = None


class WeekScheduleResult(BaseModel):
    success: bool
    error_code: Optional[BookingErrorCode] = None
    reason: Optional[str] = None
    days: list[DaySchedule] = Field(default_factory=list)


class Page(BaseModel, Generic[T]):
    content: list[T]
    page_number: int
    page_size: int
    total_elements: int
    total_pages: int
    last: bool


class ReservationPageResult(BaseModel):
    success: bool
    error_code: Optional[BookingErrorCode] = None
    reason: Optional[str] = None
    page: Optional[Page[ReservationView]] = None


class CourtUsageStat(BaseModel):
    court_id: str
    court_name: str
    reservation_count: int
    revenue: Decimal


class DashboardStats(BaseModel):
    from_date: date
    to_date: date
    total_reservations_today: int
    total_reservations_week: int
    total_reservations_month: int
    total_revenue: Decimal
    court_usage: list[CourtUsageStat]


class DashboardStatsResult(BaseModel):
    success: bool
    error_code: Optional[BookingErrorCode] = None
    reason: Optional[str] = None
    stats: Optional[DashboardStats] = None
