from __future__ import annotations

import hmac
import logging
from datetime import date
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from db.session import SessionLocal, validate_db_compatibility
from reservations.engine import BookingConfig, BookingCoordinator
from reservations.queries import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from reservations.schema import (
    BookingErrorCode,
    ErrorKind,
    ReservationFilters,
    ReservationStatusUpdateRequest,
    UserCancelRequest,
    UserReservationRequest,
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = settings.app_name
APP_VERSION = settings.app_version
API_KEY_HEADER = "X-API-Key"
ADMIN_API_KEY_HEADER = "X-Admin-API-Key"

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_FORMAT: 400,
    ErrorKind.INVALID_STATUS: 400,
    ErrorKind.POLICY_VIOLATION: 422,
    ErrorKind.SLOT_TAKEN: 409,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.DEADLINE_PASSED: 409,
    ErrorKind.STORAGE_ERROR: 503,
}

coordinator = BookingCoordinator(SessionLocal, BookingConfig.from_settings(settings))


def verify_api_key(x_api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER)):
    if not x_api_key or not hmac.compare_digest(x_api_key, settings.reservations_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")


def verify_admin_api_key(x_admin_api_key: Optional[str] = Header(default=None, alias=ADMIN_API_KEY_HEADER)):
    if not x_admin_api_key or not hmac.compare_digest(x_admin_api_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing admin API key.")


def status_code_for(error_code: BookingErrorCode | None) -> int:
    if error_code is None:
        return 500
    return ERROR_STATUS_CODES[error_code.kind]


def result_response(result, *, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.success else status_code_for(result.error_code)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    service: str
    version: str


app = FastAPI(title=APP_NAME, version=APP_VERSION)


@app.on_event("startup")
def startup_checks():
    validate_db_compatibility()
    logger.info(
        "%s %s started (max_future_reservations=%s, cancellation_deadline_hours=%s, timezone=%s)",
        APP_NAME,
        APP_VERSION,
        settings.max_future_reservations,
        settings.cancellation_deadline_hours,
        settings.club_timezone,
    )


@app.exception_handler(SQLAlchemyError)
def handle_database_error(_, exc: SQLAlchemyError):
    logger.error("Unhandled database error: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable."})


@app.get("/health/live", response_model=HealthResponse)
def health_live():
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.get("/health/ready", response_model=HealthResponse)
def health_ready():
    try:
        validate_db_compatibility()
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.post("/v1/reservations", dependencies=[Depends(verify_api_key)])
def create_reservation(request: UserReservationRequest):
    result = coordinator.create_reservation(request.user_id, request)
    return result_response(result, success_status=201)


@app.post("/v1/reservations/{reservation_id}/cancel", dependencies=[Depends(verify_api_key)])
def cancel_reservation(reservation_id: str, request: UserCancelRequest):
    return result_response(coordinator.cancel_reservation(request.user_id, reservation_id))


@app.get("/v1/reservations/my", dependencies=[Depends(verify_api_key)])
def my_reservations(
    user_id: str,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    return result_response(coordinator.list_user_reservations(user_id, page, size))


@app.get("/v1/courts/{court_id}/schedule", dependencies=[Depends(verify_api_key)])
def day_schedule(court_id: str, day: date):
    return result_response(coordinator.get_day_schedule(court_id, day))


@app.get("/v1/courts/{court_id}/week-schedule", dependencies=[Depends(verify_api_key)])
def week_schedule(court_id: str, start_date: date):
    return result_response(coordinator.get_week_schedule(court_id, start_date))


@app.get("/v1/admin/reservations", dependencies=[Depends(verify_admin_api_key)])
def admin_list_reservations(
    court_id: Optional[str] = None,
    day: Optional[date] = None,
    status: Optional[str] = None,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    filters = ReservationFilters(court_id=court_id, reservation_date=day, status=status)
    return result_response(coordinator.list_reservations(filters, page, size))


@app.post("/v1/admin/reservations/{reservation_id}/cancel", dependencies=[Depends(verify_admin_api_key)])
def admin_cancel_reservation(reservation_id: str):
    return result_response(coordinator.admin_cancel_reservation(reservation_id))


@app.put("/v1/admin/reservations/{reservation_id}/status", dependencies=[Depends(verify_admin_api_key)])
def admin_update_status(reservation_id: str, request: ReservationStatusUpdateRequest):
    return result_response(coordinator.update_reservation_status(reservation_id, request.status))


@app.get("/v1/admin/stats", dependencies=[Depends(verify_admin_api_key)])
def admin_stats(from_date: Optional[date] = None, to_date: Optional[date] = None):
    return result_response(coordinator.get_dashboard_stats(from_date, to_date))
