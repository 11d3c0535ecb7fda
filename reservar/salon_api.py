"""
Salon API Client

Thin async client for the salon's REST API (services, barbers, media,
availability, appointments, settings). This is the only place that knows
the wire shapes: list endpoints answer either a bare array or an object
wrapping it ({"services": [...]}, {"barbers": [...]}, {"media": [...]}),
and error bodies carry "error" or "message". Everything past this module
works with validated models and plain lists.

Usage:
    http = create_http_client(settings)
    api = SalonApiClient(http, authorization="Bearer ...")

    services = await api.list_services(gender="MALE")
    times = await api.get_available_times("barber-1", date(2026, 3, 2), 30)
"""

import logging
from datetime import date
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .exceptions import SalonApiError
from .models import (
    AppointmentCreate,
    AppointmentReschedule,
    AvailabilityResponse,
    Barber,
    BarberMedia,
    GenderImages,
    Service,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def create_http_client(settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared connection pool for every booking session."""
    return httpx.AsyncClient(
        base_url=settings.salon_api_base_url,
        timeout=settings.salon_api_timeout_seconds,
        headers={"Accept": "application/json"},
        transport=transport,
    )


# ────────────────────────────────────────────────────────────────
# Response normalization
# ────────────────────────────────────────────────────────────────

def unwrap_list(payload: Any, key: str) -> list:
    """
    Return the array a list endpoint meant to send.

    Examples:
        unwrap_list([{"id": "1"}], "services")              = [{"id": "1"}]
        unwrap_list({"services": [{"id": "1"}]}, "services") = [{"id": "1"}]
        unwrap_list({"services": None}, "services")         = []
        unwrap_list("oops", "services")                     = []
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def parse_items(items: list, model: type[ModelT]) -> list[ModelT]:
    """Validate each entry, skipping empty ones and logging the ones that do not fit."""
    parsed = []
    for item in items:
        if not item:
            continue
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} entry: {e.errors()[:1]}")
    return parsed


def extract_error_message(payload: Any) -> Optional[str]:
    """The server's own explanation from an error body, if it sent one."""
    if not isinstance(payload, dict):
        return None
    for key in ("error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _read_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


# ────────────────────────────────────────────────────────────────
# Client
# ────────────────────────────────────────────────────────────────

class SalonApiClient:
    """
    Typed access to the salon API.

    Wraps a shared httpx.AsyncClient; `authorization` is forwarded as the
    Authorization header on every call so the API sees the end user.
    """

    def __init__(self, http: httpx.AsyncClient, authorization: Optional[str] = None):
        self._http = http
        self.authorization = authorization

    def _headers(self) -> dict:
        if self.authorization:
            return {"Authorization": self.authorization}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                params={k: v for k, v in (params or {}).items() if v is not None} or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            logger.error(f"Request error calling salon API {method} {path}: {e}")
            raise SalonApiError(
                "Unable to connect to the booking service",
                status_code=None,
            )

        payload = _read_json(response)
        if response.is_error:
            server_message = extract_error_message(payload)
            logger.warning(
                f"Salon API {method} {path} returned {response.status_code}: {server_message or 'no message'}"
            )
            raise SalonApiError(
                server_message or f"Booking service returned HTTP {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
                payload=payload,
            )
        return payload

    # ---- catalog ----

    async def list_services(
        self,
        gender: Optional[str] = None,
        barber_id: Optional[str] = None,
    ) -> list[Service]:
        payload = await self._request("GET", "/api/services", params={"gender": gender, "barberId": barber_id})
        return parse_items(unwrap_list(payload, "services"), Service)

    async def list_barbers(self, gender: Optional[str] = None) -> list[Barber]:
        payload = await self._request("GET", "/api/barbers", params={"gender": gender})
        return parse_items(unwrap_list(payload, "barbers"), Barber)

    async def list_barber_media(self, barber_id: str) -> list[BarberMedia]:
        payload = await self._request("GET", "/api/barber/media", params={"barberId": barber_id})
        return parse_items(unwrap_list(payload, "media"), BarberMedia)

    async def get_available_times(
        self,
        barber_id: str,
        booking_date: date,
        service_duration: int,
    ) -> list[str]:
        payload = await self._request(
            "GET",
            "/api/availability",
            params={
                "barberId": barber_id,
                "date": booking_date.isoformat(),
                "serviceDuration": service_duration,
            },
        )
        if not isinstance(payload, dict):
            return []
        try:
            availability = AvailabilityResponse.model_validate(payload)
        except ValidationError:
            logger.warning(f"Malformed availability response for barber {barber_id}")
            return []
        return [t for t in availability.available_times if t]

    async def get_gender_images(self) -> GenderImages:
        payload = await self._request("GET", "/api/settings")
        if not isinstance(payload, dict):
            return GenderImages()
        return GenderImages.model_validate(payload)

    # ---- appointments ----

    async def create_appointment(self, body: AppointmentCreate) -> dict:
        payload = await self._request(
            "POST",
            "/api/appointments",
            json=body.model_dump(by_alias=True),
        )
        return payload if isinstance(payload, dict) else {}

    async def reschedule_appointment(self, appointment_id: str, body: AppointmentReschedule) -> dict:
        payload = await self._request(
            "POST",
            f"/api/appointments/{appointment_id}/reschedule",
            json=body.model_dump(by_alias=True),
        )
        return payload if isinstance(payload, dict) else {}
