"""
Catalog loading for the booking flow.

Services and professionals come from the salon API; this module decides
which gender filter to ask for, collapses duplicate service rows, makes
sure a chosen service belongs to the chosen barber, and attaches media to
each barber without letting one broken media endpoint sink the roster.

Catalog failures degrade to empty lists. The wizard shows an empty step
rather than an error page.
"""

import asyncio
import logging
from typing import Optional

from .exceptions import SalonApiError
from .models import (
    REFERENCED_PAYMENT_METHODS,
    Barber,
    BarberMedia,
    Service,
)
from .salon_api import SalonApiClient

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────
# Services
# ────────────────────────────────────────────────────────────────

def normalize_service_name(name: str) -> str:
    return (name or "").strip().lower()


def service_key(service: Service) -> tuple:
    """
    Identity of a logical service across barbers.

    Two rows with the same gender, name (case/whitespace-insensitive),
    duration and price are the same offering by different barbers.
    """
    return (
        service.gender or "",
        normalize_service_name(service.name),
        service.duration,
        service.price,
    )


def dedupe_services(services: list[Service]) -> list[Service]:
    """Keep the first row of each logical service, preserving order."""
    seen = set()
    unique = []
    for service in services:
        key = service_key(service)
        if key in seen:
            continue
        seen.add(key)
        unique.append(service)
    return unique


def resolve_service_gender(selected_gender: Optional[str], barber: Optional[Barber]) -> Optional[str]:
    """A selected barber's own gender wins over the client's choice, unless it is BOTH."""
    if barber is not None and barber.gender and barber.gender != "BOTH":
        return barber.gender
    return selected_gender or None


async def load_services(
    api: SalonApiClient,
    gender: Optional[str] = None,
    barber: Optional[Barber] = None,
) -> list[Service]:
    """
    Services for the services step.

    Without a barber the API returns one row per barber offering a
    service, so rows are deduplicated. With a barber the barber's list is
    taken as-is.
    """
    effective_gender = resolve_service_gender(gender, barber)
    barber_id = barber.id if barber is not None else None

    try:
        services = await api.list_services(gender=effective_gender, barber_id=barber_id)
    except SalonApiError as e:
        logger.warning(f"Could not load services (gender={effective_gender}, barber={barber_id}): {e.message}")
        return []

    if barber is None:
        services = dedupe_services(services)

    logger.info(f"Loaded {len(services)} services for gender={effective_gender} barber={barber_id}")
    return services


def ensure_selected_service_for_barber(
    selected: Optional[Service],
    barber_services: list[Service],
) -> Optional[Service]:
    """
    Re-resolve a selected service against one barber's own service list.

    The row picked from a deduplicated list may belong to another barber.
    Returns the same row when the barber offers it by id, otherwise the
    barber's row with the same service_key, otherwise None.
    """
    if selected is None:
        return None

    for service in barber_services:
        if service.id == selected.id:
            return service

    key = service_key(selected)
    for service in barber_services:
        if service_key(service) == key:
            return service
    return None


async def reconcile_service_for_barber(
    api: SalonApiClient,
    selected: Optional[Service],
    barber: Optional[Barber],
    selected_gender: Optional[str] = None,
) -> Optional[Service]:
    """
    Swap the selected service for the chosen barber's own row.

    When the barber's list cannot be loaded the current selection is kept
    and the appointments endpoint has the final word.
    """
    if selected is None or barber is None:
        return selected

    barber_services = await load_services(api, gender=selected_gender, barber=barber)
    if not barber_services:
        return selected

    resolved = ensure_selected_service_for_barber(selected, barber_services)
    if resolved is not None and resolved.id != selected.id:
        logger.info(f"Service '{selected.name}' re-resolved to {resolved.id} for barber {barber.id}")
    return resolved


# ────────────────────────────────────────────────────────────────
# Barbers
# ────────────────────────────────────────────────────────────────

async def fetch_barber_media(api: SalonApiClient, barber: Barber) -> list[BarberMedia]:
    try:
        return await api.list_barber_media(barber.id)
    except SalonApiError as e:
        logger.warning(f"Media unavailable for barber {barber.id}: {e.message}")
        return []


async def with_media(api: SalonApiClient, barber: Barber) -> Barber:
    media = await fetch_barber_media(api, barber)
    return barber.model_copy(update={"media": media})


async def load_barbers(api: SalonApiClient, gender: Optional[str] = None) -> list[Barber]:
    """Barbers for the barbers step, each enriched with its media list."""
    try:
        barbers = await api.list_barbers(gender=gender or None)
    except SalonApiError as e:
        logger.warning(f"Could not load barbers (gender={gender}): {e.message}")
        return []

    return list(await asyncio.gather(*(with_media(api, barber) for barber in barbers)))


def filter_barbers_for_service(barbers: list[Barber], service: Optional[Service]) -> list[Barber]:
    """
    Barbers allowed to perform a service.

    MALE services go to MALE or BOTH barbers, FEMALE services to FEMALE or
    BOTH barbers; UNISEX or ungendered services impose no restriction.
    """
    if service is None or service.gender not in ("MALE", "FEMALE"):
        return list(barbers)
    allowed = (service.gender, "BOTH")
    return [barber for barber in barbers if barber.gender in allowed]


# ────────────────────────────────────────────────────────────────
# Barber presentation
# ────────────────────────────────────────────────────────────────

def professional_title(gender: Optional[str]) -> str:
    if gender == "MALE":
        return "Barber"
    if gender == "FEMALE":
        return "Stylist"
    if gender == "BOTH":
        return "Barber & Stylist"
    return "Professional"


def split_media(barber: Barber) -> tuple[list[BarberMedia], list[BarberMedia]]:
    """(photos, videos) for the barber profile step."""
    photos = [m for m in barber.media if m.media_type == "PHOTO"]
    videos = [m for m in barber.media if m.media_type == "VIDEO"]
    return photos, videos


def payment_options(barber: Optional[Barber]) -> list[str]:
    """Payment methods the barber can receive. Cash is always accepted."""
    if barber is None:
        return []
    options = []
    if barber.zelle_email or barber.zelle_phone:
        options.append("ZELLE")
    if barber.cashapp_tag:
        options.append("CASHAPP")
    options.append("CASH")
    return options


def needs_payment_reference(method: Optional[str]) -> bool:
    return method in REFERENCED_PAYMENT_METHODS
