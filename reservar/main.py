import logging
from datetime import date as date_type, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .core.config import get_settings
from .core.responses import ErrorCodes, error_response, success_response
from .exceptions import InvalidTransitionError
from .models import CamelModel, DirectLink, FlowRoutes, UserSession
from .salon_api import SalonApiClient, create_http_client
from .sessions import BookingSession, BookingSessionNotFoundError, BookingSessionStore
from .wizard import BookingWizard


settings = get_settings()
app = FastAPI(title="Reservar Booking Flow")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.sessions = BookingSessionStore(ttl=timedelta(minutes=settings.session_ttl_minutes))
app.state.http = None


def get_local_now() -> datetime:
    """Current datetime in the shop's timezone."""
    return datetime.now(ZoneInfo(settings.booking_timezone))


# ────────────────────────────────────────────────────────────────
# Request bodies
# ────────────────────────────────────────────────────────────────

class GenderRequest(BaseModel):
    gender: str


class ServiceRequest(CamelModel):
    service_id: str


class BarberRequest(CamelModel):
    barber_id: str


class DateRequest(BaseModel):
    date: date_type


class TimeRequest(BaseModel):
    time: str


class PaymentRequest(CamelModel):
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    accept_cancellation_policy: Optional[bool] = None


# ────────────────────────────────────────────────────────────────
# Dependencies
# ────────────────────────────────────────────────────────────────

def get_store(request: Request) -> BookingSessionStore:
    return request.app.state.sessions


def get_http_client(request: Request) -> httpx.AsyncClient:
    if request.app.state.http is None:
        request.app.state.http = create_http_client(settings)
    return request.app.state.http


def get_clock() -> Callable[[], datetime]:
    return get_local_now


def resolve_user_session(request: Request) -> Optional[UserSession]:
    """
    Identity forwarded by the frontend's auth layer.

    No X-User-Id means an anonymous visitor, which is allowed until the
    booking is confirmed.
    """
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return None
    return UserSession(
        id=user_id,
        name=request.headers.get("X-User-Name"),
        email=request.headers.get("X-User-Email"),
        role=request.headers.get("X-User-Role"),
    )


def load_booking(
    session_id: str,
    request: Request,
    store: BookingSessionStore = Depends(get_store),
    user: Optional[UserSession] = Depends(resolve_user_session),
) -> BookingSession:
    booking = store.get(session_id)
    # The user may sign in mid-flow; always act for whoever is calling now
    booking.wizard.session = user
    booking.wizard.api.authorization = request.headers.get("Authorization")
    return booking


def booking_response(booking: BookingSession) -> dict:
    snapshot = booking.wizard.snapshot()
    snapshot["sessionId"] = booking.id
    snapshot["redirectTo"] = booking.take_redirect()
    return success_response(snapshot)


# ────────────────────────────────────────────────────────────────
# Error handlers
# ────────────────────────────────────────────────────────────────

@app.exception_handler(BookingSessionNotFoundError)
async def session_not_found_handler(request: Request, exc: BookingSessionNotFoundError):
    return JSONResponse(
        status_code=404,
        content=error_response(ErrorCodes.SESSION_NOT_FOUND, str(exc), {"sessionId": exc.session_id}),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err["loc"][1:]) for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=error_response(ErrorCodes.VALIDATION_ERROR, "Invalid request body", {"fields": fields}),
    )


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    details = {k: v for k, v in {"step": exc.step, "event": exc.event}.items() if v}
    return JSONResponse(
        status_code=409,
        content=error_response(ErrorCodes.STATE_CONFLICT, exc.message, details or None),
    )


# ────────────────────────────────────────────────────────────────
# Lifecycle
# ────────────────────────────────────────────────────────────────

@app.on_event("startup")
async def on_startup():
    if app.state.http is None:
        app.state.http = create_http_client(settings)
    logger.info(f"Booking flow ready; salon API at {settings.salon_api_base_url}")


@app.on_event("shutdown")
async def on_shutdown():
    app.state.sessions.clear()
    if app.state.http is not None:
        await app.state.http.aclose()
        app.state.http = None


@app.get("/health")
async def health():
    return {"status": "ok"}


# ────────────────────────────────────────────────────────────────
# Booking flow
# ────────────────────────────────────────────────────────────────

@app.post("/booking/sessions")
async def open_booking_session(
    request: Request,
    store: BookingSessionStore = Depends(get_store),
    http: httpx.AsyncClient = Depends(get_http_client),
    user: Optional[UserSession] = Depends(resolve_user_session),
    now_fn: Callable[[], datetime] = Depends(get_clock),
):
    link = DirectLink.from_query(request.query_params)
    api = SalonApiClient(http, authorization=request.headers.get("Authorization"))

    booking = store.open(
        lambda navigate: BookingWizard(
            api,
            session=user,
            navigate=navigate,
            link=link,
            routes=FlowRoutes.from_settings(settings),
            now_fn=now_fn,
            shop_name=settings.shop_name,
            default_service_duration=settings.default_service_duration_minutes,
            tick_seconds=settings.clock_tick_seconds,
        )
    )
    await booking.wizard.start()
    return booking_response(booking)


@app.get("/booking/sessions/{session_id}")
async def get_booking_session(booking: BookingSession = Depends(load_booking)):
    return booking_response(booking)


@app.delete("/booking/sessions/{session_id}")
async def discard_booking_session(session_id: str, store: BookingSessionStore = Depends(get_store)):
    if not store.discard(session_id):
        raise BookingSessionNotFoundError(session_id)
    return success_response({"sessionId": session_id, "discarded": True})


@app.post("/booking/sessions/{session_id}/gender")
async def choose_gender(payload: GenderRequest, booking: BookingSession = Depends(load_booking)):
    await booking.wizard.choose_gender(payload.gender.strip().upper())
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/service")
async def choose_service(payload: ServiceRequest, booking: BookingSession = Depends(load_booking)):
    await booking.wizard.choose_service(payload.service_id)
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/barber")
async def choose_barber(payload: BarberRequest, booking: BookingSession = Depends(load_booking)):
    await booking.wizard.choose_barber(payload.barber_id)
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/continue")
async def continue_to_datetime(booking: BookingSession = Depends(load_booking)):
    await booking.wizard.continue_to_datetime()
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/date")
async def select_date(payload: DateRequest, booking: BookingSession = Depends(load_booking)):
    await booking.wizard.select_date(payload.date)
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/time")
async def select_time(payload: TimeRequest, booking: BookingSession = Depends(load_booking)):
    booking.wizard.select_time(payload.time)
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/payment-step")
async def continue_to_payment(booking: BookingSession = Depends(load_booking)):
    booking.wizard.continue_to_payment()
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/payment")
async def set_payment(payload: PaymentRequest, booking: BookingSession = Depends(load_booking)):
    booking.wizard.set_payment(
        payment_method=payload.payment_method.strip().upper() if payload.payment_method else None,
        payment_reference=payload.payment_reference,
        notes=payload.notes,
        accept_cancellation_policy=payload.accept_cancellation_policy,
    )
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/back")
async def go_back(booking: BookingSession = Depends(load_booking)):
    await booking.wizard.back()
    return booking_response(booking)


@app.post("/booking/sessions/{session_id}/confirm")
async def confirm_booking(
    booking: BookingSession = Depends(load_booking),
    store: BookingSessionStore = Depends(get_store),
):
    await booking.wizard.confirm()
    response = booking_response(booking)
    if booking.wizard.completed:
        store.discard(booking.id)
    return response
