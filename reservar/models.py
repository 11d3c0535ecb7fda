"""
Booking data shapes.

Catalog entities (Service, Barber, media) are read-only copies of what the
salon API returns, validated with pydantic at the network boundary. The
appointment draft and the wizard context types are plain dataclasses: they
live for one booking session and never leave this process except through
the submission payload.
"""
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ServiceGender = Literal["MALE", "FEMALE", "UNISEX"]
BarberGender = Literal["MALE", "FEMALE", "BOTH"]
PaymentMethod = Literal["ZELLE", "CASHAPP", "CASH"]

# Genders a client can pick on the first step
SELECTABLE_GENDERS = ("MALE", "FEMALE")
# Methods that carry a transaction reference typed by the client
REFERENCED_PAYMENT_METHODS = ("ZELLE", "CASHAPP")


class CamelModel(BaseModel):
    """Accepts the salon API's camelCase keys and ignores unknown ones."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def normalize_gender(value: Any, allowed: tuple[str, ...]) -> Optional[str]:
    """
    Upper-case a gender value from the salon API.

    Blank or unrecognised values become None so the row still loads and
    callers decide what a missing gender means.
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip().upper()
    return cleaned if cleaned in allowed else None


# ────────────────────────────────────────────────────────────────
# Catalog
# ────────────────────────────────────────────────────────────────

class Service(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    duration: int
    price: float
    image: Optional[str] = None
    gender: Optional[ServiceGender] = None
    barber_id: Optional[str] = None

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value):
        return normalize_gender(value, ("MALE", "FEMALE", "UNISEX"))


class BarberUser(CamelModel):
    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class BarberMedia(CamelModel):
    id: str
    media_type: str
    media_url: str
    title: Optional[str] = None


class Barber(CamelModel):
    id: str
    user_id: Optional[str] = None
    bio: Optional[str] = None
    specialties: Optional[str] = None
    hourly_rate: Optional[float] = None
    profile_image: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_url: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None
    twitter_url: Optional[str] = None
    zelle_email: Optional[str] = None
    zelle_phone: Optional[str] = None
    cashapp_tag: Optional[str] = None
    rating: Optional[float] = None
    gender: Optional[BarberGender] = None
    user: Optional[BarberUser] = None
    media: list[BarberMedia] = Field(default_factory=list)
    gallery_images: list[Any] = Field(default_factory=list)

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value):
        return normalize_gender(value, ("MALE", "FEMALE", "BOTH"))

    @property
    def display_name(self) -> str:
        if self.user and self.user.name:
            return self.user.name
        return "Professional"


class AvailabilityResponse(CamelModel):
    available_times: list[str] = Field(default_factory=list)


class GenderImages(CamelModel):
    male_gender_image: Optional[str] = None
    female_gender_image: Optional[str] = None


class AppointmentCreate(CamelModel):
    """Body of POST /api/appointments."""
    barber_id: str
    service_id: str
    date: str  # YYYY-MM-DD
    time: str
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    notes: str = ""


class AppointmentReschedule(CamelModel):
    """Body of POST /api/appointments/{id}/reschedule."""
    date: str  # YYYY-MM-DD
    time: str


# ────────────────────────────────────────────────────────────────
# Wizard context
# ────────────────────────────────────────────────────────────────

@dataclass
class UserSession:
    """Authenticated user, as resolved by the host from the incoming request."""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class DirectLink:
    """Query parameters that shape where the booking flow starts."""
    barber_id: Optional[str] = None
    service_id: Optional[str] = None
    reschedule_id: Optional[str] = None

    @classmethod
    def from_query(cls, params) -> "DirectLink":
        def clean(key: str) -> Optional[str]:
            value = (params.get(key) or "").strip()
            return value or None

        return cls(
            barber_id=clean("barberId"),
            service_id=clean("serviceId"),
            reschedule_id=clean("reschedule"),
        )


@dataclass
class AppointmentDraft:
    """Selections accumulated across the wizard steps. Not persisted until submission."""
    service: Optional[Service] = None
    barber: Optional[Barber] = None
    date: Optional[date_type] = None
    time: str = ""
    payment_method: Optional[PaymentMethod] = None
    payment_reference: str = ""
    notes: str = ""
    accept_cancellation_policy: bool = False

    def missing_fields(self) -> list[str]:
        missing = []
        if self.service is None:
            missing.append("service")
        if self.barber is None:
            missing.append("barber")
        if self.date is None:
            missing.append("date")
        if not self.time:
            missing.append("time")
        if not self.payment_method:
            missing.append("paymentMethod")
        return missing


@dataclass
class BookingSummary:
    """What the confirmation screen shows after a successful booking."""
    professional: str
    service: str
    date: str
    time: str
    price: float

    def to_dict(self) -> dict:
        return {
            "professional": self.professional,
            "service": self.service,
            "date": self.date,
            "time": self.time,
            "price": self.price,
        }


@dataclass(frozen=True)
class FlowRoutes:
    """Frontend routes the wizard may ask the host to navigate to."""
    profile: str = "/dashboard/cliente"
    dashboard: str = "/dashboard"
    landing: str = "/inicio"
    sign_in: str = "/auth"
    barber_page_template: str = "/barberos/{barber_id}"

    def barber_page(self, barber_id: str) -> str:
        return self.barber_page_template.format(barber_id=barber_id)

    @classmethod
    def from_settings(cls, settings) -> "FlowRoutes":
        return cls(
            profile=settings.profile_route,
            dashboard=settings.dashboard_route,
            landing=settings.landing_route,
            sign_in=settings.sign_in_route,
            barber_page_template=settings.barber_page_route,
        )
