"""Reservation orchestration: validation, atomic commit and schedule reads."""

from __future__ import annotations

import calendar
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reservations.availability import ACTIVE_STATUS, active_reservations, count_future_confirmed, has_conflict
from reservations.lifecycle import ReservationLifecycle
from reservations.locks import KeyedLocks
from reservations.models import OVERLAP_VIOLATION, Court, Reservation, User
from reservations.parsing import parse_date, parse_role, parse_status, parse_time
from reservations.queries import (
    count_between,
    court_usage,
    filtered_reservations_query,
    normalize_paging,
    paginate,
    to_view,
    total_revenue,
    user_reservations_query,
)
from reservations.rules import BookingPolicy, RuleCheckResult
from reservations.schedule import project_day, project_week, week_dates
from reservations.schema import (
    BookingErrorCode,
    DashboardStats,
    DashboardStatsResult,
    ReservationFilters,
    ReservationPageResult,
    ReservationRequest,
    ReservationResult,
    ReservationStatus,
    ScheduleResult,
    UserRole,
    WeekScheduleResult,
)

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("reservations.audit")

STORAGE_FAILURE_REASON = "Storage error while processing the reservation."

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class BookingConfig:
    max_future_reservations: int = 5
    cancellation_deadline_hours: int = 2
    club_timezone: str = "UTC"

    @classmethod
    def from_settings(cls, settings) -> "BookingConfig":
        return cls(
            max_future_reservations=settings.max_future_reservations,
            cancellation_deadline_hours=settings.cancellation_deadline_hours,
            club_timezone=settings.club_timezone,
        )


def club_clock(tz_name: str) -> Clock:
    """Naive wall-clock time at the club, matching how dates and times are stored."""
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown club timezone %r, falling back to UTC", tz_name)
        zone = ZoneInfo("UTC")

    def now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return now


def _failure(check: RuleCheckResult) -> ReservationResult:
    return ReservationResult(success=False, error_code=check.error_code, reason=check.reason)


def _error(error_code: BookingErrorCode, reason: str) -> ReservationResult:
    return ReservationResult(success=False, error_code=error_code, reason=reason)


def _is_overlap_violation(exc: IntegrityError) -> bool:
    return OVERLAP_VIOLATION in str(exc.orig)


class BookingCoordinator:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: BookingConfig | None = None,
        *,
        clock: Clock | None = None,
        locks: KeyedLocks | None = None,
        user_locks: KeyedLocks | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.config = config or BookingConfig()
        self._clock = clock or club_clock(self.config.club_timezone)
        self._locks = locks or KeyedLocks("court_day_lock")
        self._user_locks = user_locks or KeyedLocks("user_lock")

    # Booking

    def create_reservation(self, user_id: str, request: ReservationRequest | dict[str, Any]) -> ReservationResult:
        if not isinstance(request, ReservationRequest):
            try:
                request = ReservationRequest.model_validate(request)
            except ValidationError as exc:
                return _error(BookingErrorCode.INVALID_FORMAT, f"Invalid reservation payload: {exc.error_count()} error(s).")

        reservation_date, date_check = parse_date(request.date)
        start_time, start_check = parse_time(request.start_time)
        end_time, end_check = parse_time(request.end_time)

        # Parse failures are reported after the lookups, so only lock when there is a day to lock.
        guard = self._locks.hold(request.court_id, reservation_date) if reservation_date else nullcontext()

        # The user lock spans the quota count and the insert; SQLite ignores FOR UPDATE.
        # Always taken before the court-day lock.
        with self._user_locks.hold(user_id), guard, self._session_factory() as db:
            try:
                with db.begin():
                    user = db.get(User, user_id, with_for_update=True)
                    if not user:
                        return _error(BookingErrorCode.NOT_FOUND, f"User {user_id} not found.")
                    court = db.get(Court, request.court_id, with_for_update=True)
                    if not court:
                        return _error(BookingErrorCode.NOT_FOUND, f"Court {request.court_id} not found.")

                    for check in (date_check, start_check, end_check):
                        if not check.allowed:
                            return _failure(check)

                    now = self._clock()
                    future_count = count_future_confirmed(db, user_id=user.id, today=now.date(), now_time=now.time())
                    policy_check = BookingPolicy.validate_create(
                        court,
                        reservation_date,
                        start_time,
                        end_time,
                        future_count=future_count,
                        today=now.date(),
                        max_future_reservations=self.config.max_future_reservations,
                    )
                    if not policy_check.allowed:
                        return _failure(policy_check)

                    if has_conflict(
                        db,
                        court_id=court.id,
                        reservation_date=reservation_date,
                        start_time=start_time,
                        end_time=end_time,
                        lock_rows=True,
                    ):
                        return _error(BookingErrorCode.SLOT_TAKEN, "The selected slot is already booked.")

                    role, _ = parse_role(user.role)
                    reservation = ReservationLifecycle.create(
                        user_id=user.id,
                        court_id=court.id,
                        reservation_date=reservation_date,
                        start_time=start_time,
                        end_time=end_time,
                        paid_price=BookingPolicy.price_for(court, role or UserRole.STANDARD),
                        notes=request.notes,
                    )
                    db.add(reservation)
                    db.flush()
                    db.refresh(reservation)
                    view = to_view(reservation)
            except IntegrityError as exc:
                db.rollback()
                if _is_overlap_violation(exc):
                    logger.warning("Store rejected overlapping reservation on court %s for %s", request.court_id, reservation_date)
                    return _error(BookingErrorCode.SLOT_TAKEN, "The selected slot is already booked.")
                logger.error("Integrity error while creating reservation: %s", exc)
                return _error(BookingErrorCode.STORAGE_ERROR, STORAGE_FAILURE_REASON)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Database error while creating reservation: %s", exc)
                return _error(BookingErrorCode.STORAGE_ERROR, STORAGE_FAILURE_REASON)

        audit_logger.info(
            "reservation_created id=%s user=%s court=%s date=%s start=%s end=%s price=%s",
            view.id,
            user_id,
            view.court_id,
            view.reservation_date,
            view.start_time.strftime("%H:%M"),
            view.end_time.strftime("%H:%M"),
            view.paid_price,
        )
        return ReservationResult(success=True, reservation=view)

    # Cancellation and status changes

    def cancel_reservation(self, user_id: str, reservation_id: str) -> ReservationResult:
        def transition(reservation: Reservation) -> RuleCheckResult:
            return ReservationLifecycle.user_cancel(
                reservation,
                user_id,
                now=self._clock(),
                deadline_hours=self.config.cancellation_deadline_hours,
            )

        return self._apply_transition(reservation_id, transition, action=f"cancelled_by_user user={user_id}")

    def admin_cancel_reservation(self, reservation_id: str) -> ReservationResult:
        return self._apply_transition(reservation_id, ReservationLifecycle.admin_cancel, action="cancelled_by_admin")

    def update_reservation_status(self, reservation_id: str, status: str | None) -> ReservationResult:
        new_status, _ = parse_status(status)

        def transition(reservation: Reservation) -> RuleCheckResult:
            return ReservationLifecycle.admin_set_status(reservation, status)

        return self._apply_transition(
            reservation_id,
            transition,
            action=f"status_set_by_admin status={new_status.value if new_status else status}",
            reopening=new_status == ReservationStatus.CONFIRMED,
        )

    def _apply_transition(
        self,
        reservation_id: str,
        transition: Callable[[Reservation], RuleCheckResult],
        *,
        action: str,
        reopening: bool = False,
    ) -> ReservationResult:
        with self._session_factory() as db:
            try:
                with db.begin():
                    existing = db.get(Reservation, reservation_id)
                    if not existing:
                        return _error(BookingErrorCode.NOT_FOUND, f"Reservation {reservation_id} not found.")
                    court_id, reservation_date = existing.court_id, existing.reservation_date

                # Reopening re-enters the exclusivity invariant, so it commits under the court-day lock.
                guard = self._locks.hold(court_id, reservation_date) if reopening else nullcontext()
                with guard:
                    with db.begin():
                        reservation = db.get(Reservation, reservation_id, with_for_update=True, populate_existing=True)
                        if not reservation:
                            return _error(BookingErrorCode.NOT_FOUND, f"Reservation {reservation_id} not found.")

                        if (
                            reopening
                            and reservation.status != ACTIVE_STATUS
                            and has_conflict(
                                db,
                                court_id=reservation.court_id,
                                reservation_date=reservation.reservation_date,
                                start_time=reservation.start_time,
                                end_time=reservation.end_time,
                                exclude_reservation_id=reservation.id,
                                lock_rows=True,
                            )
                        ):
                            return _error(BookingErrorCode.SLOT_TAKEN, "Another confirmed reservation now holds this slot.")

                        check = transition(reservation)
                        if not check.allowed:
                            return _failure(check)
                        db.flush()
                        db.refresh(reservation)
                        view = to_view(reservation)
            except IntegrityError as exc:
                db.rollback()
                if _is_overlap_violation(exc):
                    return _error(BookingErrorCode.SLOT_TAKEN, "Another confirmed reservation now holds this slot.")
                logger.error("Integrity error while updating reservation %s: %s", reservation_id, exc)
                return _error(BookingErrorCode.STORAGE_ERROR, STORAGE_FAILURE_REASON)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Database error while updating reservation %s: %s", reservation_id, exc)
                return _error(BookingErrorCode.STORAGE_ERROR, STORAGE_FAILURE_REASON)

        audit_logger.info("reservation_%s id=%s status=%s", action, view.id, view.status.value)
        return ReservationResult(success=True, reservation=view)

    # Schedules

    def get_day_schedule(self, court_id: str, day: date | str) -> ScheduleResult:
        if isinstance(day, str):
            parsed, check = parse_date(day)
            if parsed is None:
                return ScheduleResult(success=False, error_code=check.error_code, reason=check.reason)
            day = parsed

        with self._session_factory() as db:
            try:
                court = db.get(Court, court_id)
                if not court:
                    return ScheduleResult(success=False, error_code=BookingErrorCode.NOT_FOUND, reason=f"Court {court_id} not found.")
                reservations = active_reservations(db, court_id=court.id, reservation_date=day)
                return ScheduleResult(success=True, schedule=project_day(court, day, reservations))
            except SQLAlchemyError as exc:
                logger.error("Database error while loading schedule for court %s: %s", court_id, exc)
                return ScheduleResult(success=False, error_code=BookingErrorCode.STORAGE_ERROR, reason=STORAGE_FAILURE_REASON)

    def get_week_schedule(self, court_id: str, start_date: date | str) -> WeekScheduleResult:
        if isinstance(start_date, str):
            parsed, check = parse_date(start_date)
            if parsed is None:
                return WeekScheduleResult(success=False, error_code=check.error_code, reason=check.reason)
            start_date = parsed

        with self._session_factory() as db:
            try:
                court = db.get(Court, court_id)
                if not court:
                    return WeekScheduleResult(success=False, error_code=BookingErrorCode.NOT_FOUND, reason=f"Court {court_id} not found.")
                days = week_dates(start_date)
                rows = db.scalars(
                    select(Reservation)
                    .where(
                        Reservation.court_id == court.id,
                        Reservation.reservation_date.between(days[0], days[-1]),
                        Reservation.status == ACTIVE_STATUS,
                    )
                    .order_by(Reservation.reservation_date.asc(), Reservation.start_time.asc())
                ).unique()
                by_day: dict[date, list[Reservation]] = {}
                for reservation in rows:
                    by_day.setdefault(reservation.reservation_date, []).append(reservation)
                return WeekScheduleResult(success=True, days=project_week(court, start_date, by_day))
            except SQLAlchemyError as exc:
                logger.error("Database error while loading week schedule for court %s: %s", court_id, exc)
                return WeekScheduleResult(success=False, error_code=BookingErrorCode.STORAGE_ERROR, reason=STORAGE_FAILURE_REASON)

    # Listings

    def list_user_reservations(self, user_id: str, page: int = 0, size: int = 10) -> ReservationPageResult:
        page, size = normalize_paging(page, size)
        with self._session_factory() as db:
            try:
                return ReservationPageResult(
                    success=True,
                    page=paginate(db, user_reservations_query(user_id), page=page, size=size),
                )
            except SQLAlchemyError as exc:
                logger.error("Database error while listing reservations for user %s: %s", user_id, exc)
                return ReservationPageResult(success=False, error_code=BookingErrorCode.STORAGE_ERROR, reason=STORAGE_FAILURE_REASON)

    def list_reservations(
        self,
        filters: ReservationFilters | None = None,
        page: int = 0,
        size: int = 10,
    ) -> ReservationPageResult:
        filters = filters or ReservationFilters()
        status = None
        if filters.status:
            status, check = parse_status(filters.status)
            if status is None:
                return ReservationPageResult(success=False, error_code=check.error_code, reason=check.reason)

        page, size = normalize_paging(page, size)
        stmt = filtered_reservations_query(
            court_id=filters.court_id,
            reservation_date=filters.reservation_date,
            status=status,
        )
        with self._session_factory() as db:
            try:
                return ReservationPageResult(success=True, page=paginate(db, stmt, page=page, size=size))
            except SQLAlchemyError as exc:
                logger.error("Database error while listing reservations: %s", exc)
                return ReservationPageResult(success=False, error_code=BookingErrorCode.STORAGE_ERROR, reason=STORAGE_FAILURE_REASON)

    # Statistics

    def get_dashboard_stats(self, from_date: date | None = None, to_date: date | None = None) -> DashboardStatsResult:
        today = self._clock().date()
        month_start = today.replace(day=1)
        month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
        week_start = today - timedelta(days=today.weekday())
        week_end = week_start + timedelta(days=6)
        from_date = from_date or month_start
        to_date = to_date or today

        with self._session_factory() as db:
            try:
                stats = DashboardStats(
                    from_date=from_date,
                    to_date=to_date,
                    total_reservations_today=count_between(db, from_date=today, to_date=today),
                    total_reservations_week=count_between(db, from_date=week_start, to_date=week_end),
                    total_reservations_month=count_between(db, from_date=month_start, to_date=month_end),
                    total_revenue=total_revenue(db, from_date=from_date, to_date=to_date),
                    court_usage=court_usage(db, from_date=from_date, to_date=to_date),
                )
            except SQLAlchemyError as exc:
                logger.error("Database error while computing dashboard stats: %s", exc)
                return DashboardStatsResult(success=False, error_code=BookingErrorCode.STORAGE_ERROR, reason=STORAGE_FAILURE_REASON)
        return DashboardStatsResult(success=True, stats=stats)
