"""
Booking Wizard

Six-step reservation flow:

    gender -> services -> barbers -> barber-profile -> datetime -> payment

Forward moves are looked up in TRANSITIONS, keyed by (step, event).
Back moves depend on how the flow was entered (?barberId / ?serviceId)
and are resolved by resolve_back(). Both are plain data and functions so
the rules can be checked without a wizard instance.

Direct links:
    ?barberId=X             start on services, scoped to barber X
    ?barberId=X&serviceId=Y start on datetime when X offers Y

The wizard talks to the outside through three injected collaborators:
the salon API client, the user session (or None), and navigate(path) for
routes outside the flow. Problems reach the client as notices, never as
exceptions, except InvalidTransitionError, which means the caller sent an
event the current step does not accept.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional

from pydantic import ValidationError

from .availability import AvailabilityKey, AvailabilityLoader
from .catalog import (
    filter_barbers_for_service,
    load_barbers,
    load_services,
    needs_payment_reference,
    payment_options,
    professional_title,
    reconcile_service_for_barber,
    split_media,
    with_media,
)
from .clock import MinuteTicker
from .exceptions import (
    BookingFlowError,
    BookingValidationError,
    DataIntegrityError,
    InvalidTransitionError,
    SalonApiError,
    SignInRequiredError,
)
from .models import (
    SELECTABLE_GENDERS,
    AppointmentDraft,
    BookingSummary,
    DirectLink,
    FlowRoutes,
    UserSession,
)
from .notices import NoticeBoard
from .salon_api import SalonApiClient
from .submission import check_ready, submit_booking
from .time_slots import (
    build_appointment_datetime,
    filter_available_times,
    format_slot,
    group_slots,
    normalize_time_to_hhmm,
    quick_days,
    sort_slots,
)

logger = logging.getLogger(__name__)


class Step(str, Enum):
    GENDER = "gender"
    SERVICES = "services"
    BARBERS = "barbers"
    BARBER_PROFILE = "barber-profile"
    DATETIME = "datetime"
    PAYMENT = "payment"


class Event(str, Enum):
    CHOOSE_GENDER = "choose_gender"
    CHOOSE_SERVICE = "choose_service"
    CHOOSE_SERVICE_FOR_BARBER = "choose_service_for_barber"
    CHOOSE_BARBER = "choose_barber"
    CONTINUE_TO_DATETIME = "continue_to_datetime"
    CONTINUE_TO_PAYMENT = "continue_to_payment"
    DIRECT_LINK_RESOLVED = "direct_link_resolved"


TRANSITIONS: dict[tuple[Step, Event], Step] = {
    (Step.GENDER, Event.CHOOSE_GENDER): Step.SERVICES,
    (Step.SERVICES, Event.CHOOSE_SERVICE): Step.BARBERS,
    (Step.SERVICES, Event.CHOOSE_SERVICE_FOR_BARBER): Step.DATETIME,
    (Step.SERVICES, Event.DIRECT_LINK_RESOLVED): Step.DATETIME,
    (Step.BARBERS, Event.CHOOSE_BARBER): Step.BARBER_PROFILE,
    (Step.BARBER_PROFILE, Event.CONTINUE_TO_DATETIME): Step.DATETIME,
    (Step.DATETIME, Event.CONTINUE_TO_PAYMENT): Step.PAYMENT,
}


def next_step(step: Step, event: Event) -> Step:
    try:
        return TRANSITIONS[(step, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"'{event.value}' is not allowed on the {step.value} step",
            step=step.value,
            event=event.value,
        )


def initial_step(link: DirectLink) -> Step:
    return Step.SERVICES if link.barber_id else Step.GENDER


@dataclass(frozen=True)
class BackTarget:
    """Where "back" leads: an internal step, or a route outside the flow."""
    step: Optional[Step] = None
    redirect_to: Optional[str] = None
    clear: tuple[str, ...] = ()


def resolve_back(
    step: Step,
    link: DirectLink,
    has_barber: bool,
    is_authenticated: bool,
    routes: FlowRoutes,
) -> BackTarget:
    if step == Step.PAYMENT:
        return BackTarget(step=Step.DATETIME)

    if step == Step.DATETIME:
        if link.barber_id and link.service_id:
            return BackTarget(redirect_to=routes.barber_page(link.barber_id))
        if link.barber_id and has_barber:
            return BackTarget(step=Step.SERVICES, clear=("service",))
        return BackTarget(step=Step.BARBER_PROFILE)

    if step == Step.BARBER_PROFILE:
        return BackTarget(step=Step.BARBERS, clear=("barber",))

    if step == Step.BARBERS:
        return BackTarget(step=Step.SERVICES, clear=("service",))

    if step == Step.SERVICES:
        if link.barber_id:
            return BackTarget(redirect_to=routes.barber_page(link.barber_id))
        return BackTarget(step=Step.GENDER, clear=("gender",))

    # gender is the entry point: leave the flow
    return BackTarget(redirect_to=routes.dashboard if is_authenticated else routes.landing)


class BookingWizard:
    """One client's booking session."""

    def __init__(
        self,
        api: SalonApiClient,
        *,
        session: Optional[UserSession],
        navigate: Callable[[str], None],
        link: Optional[DirectLink] = None,
        routes: Optional[FlowRoutes] = None,
        now_fn: Callable[[], datetime] = datetime.now,
        shop_name: str = "JBBarbershop",
        default_service_duration: int = 30,
        tick_seconds: float = 60.0,
    ):
        self.api = api
        self.session = session
        self.navigate = navigate
        self.link = link or DirectLink()
        self.routes = routes or FlowRoutes()
        self.shop_name = shop_name
        self.default_service_duration = default_service_duration
        self._now_fn = now_fn

        self.step = initial_step(self.link)
        self.draft = AppointmentDraft()
        self.gender: Optional[str] = None
        self.services = []
        self.barbers = []
        self.available_times: list[str] = []
        self.now = now_fn()
        self.notices = NoticeBoard()
        self.loading = False
        self.barbers_loading = False
        self.completed = False
        self.summary: Optional[BookingSummary] = None
        self.scroll_anchor: Optional[str] = None
        self.male_gender_image: Optional[str] = None
        self.female_gender_image: Optional[str] = None

        self._availability = AvailabilityLoader(api)
        self._clock = MinuteTicker(self._on_tick, now_fn, tick_seconds)

    # ────────────────────────────────────────────────────────────
    # Derived state
    # ────────────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def filtered_barbers(self):
        return filter_barbers_for_service(self.barbers, self.draft.service)

    @property
    def filtered_available_times(self) -> list[str]:
        return filter_available_times(self.available_times, self.draft.date, self.now)

    @property
    def clock_running(self) -> bool:
        return self._clock.running

    def today(self) -> date:
        return self._now_fn().date()

    # ────────────────────────────────────────────────────────────
    # Lifecycle
    # ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load decorative settings and, for direct links, resolve the barber (and service)."""
        await self._load_gender_images()
        if self.link.barber_id:
            await self._run(self._resolve_direct_link())

    def close(self) -> None:
        """Release the minute clock. Call when the session is discarded."""
        self._clock.stop()
        self._availability.invalidate()

    async def _load_gender_images(self) -> None:
        try:
            images = await self.api.get_gender_images()
        except (SalonApiError, ValidationError) as e:
            logger.warning(f"Error loading gender images: {e}")
            return
        self.male_gender_image = images.male_gender_image
        self.female_gender_image = images.female_gender_image

    async def _resolve_direct_link(self) -> None:
        barber_id = self.link.barber_id
        logger.info(f"Direct link: barberId={barber_id} serviceId={self.link.service_id}")

        try:
            barbers = await self.api.list_barbers()
        except SalonApiError as e:
            logger.error(f"Error loading professional {barber_id}: {e.message}")
            raise BookingFlowError("Error loading professional")

        barber = next((b for b in barbers if b.id == barber_id), None)
        if barber is None:
            logger.warning(f"Direct link barber {barber_id} not found")
            raise BookingFlowError("Professional not found")

        if barber.gender not in SELECTABLE_GENDERS:
            logger.error(f"Barber {barber_id} has invalid gender for service scoping: {barber.gender}")
            raise DataIntegrityError("Error: This professional's gender is not set correctly")

        self.draft.barber = await with_media(self.api, barber)
        self.gender = barber.gender
        self.services = await load_services(self.api, gender=self.gender, barber=self.draft.barber)

        if not self.link.service_id:
            return

        service = next((s for s in self.services if s.id == self.link.service_id), None)
        if service is None:
            logger.info(f"Direct link service {self.link.service_id} not offered by {barber_id}; showing services")
            return

        self.draft.service = service
        self._enter(next_step(self.step, Event.DIRECT_LINK_RESOLVED))

    # ────────────────────────────────────────────────────────────
    # Forward steps
    # ────────────────────────────────────────────────────────────

    async def choose_gender(self, gender: str) -> None:
        self._require_idle()
        target = next_step(self.step, Event.CHOOSE_GENDER)
        if gender not in SELECTABLE_GENDERS:
            self.notices.error("Please choose who the appointment is for")
            return
        self.gender = gender
        self._enter(target)
        await self._reload_services()

    async def choose_service(self, service_id: str) -> None:
        self._require_idle()
        event = Event.CHOOSE_SERVICE_FOR_BARBER if self.draft.barber else Event.CHOOSE_SERVICE
        target = next_step(self.step, event)

        service = next((s for s in self.services if s.id == service_id), None)
        if service is None:
            self.notices.error("That service is no longer available")
            return

        self.draft.service = service
        self._enter(target)
        if target == Step.BARBERS:
            await self._reload_barbers()
        else:
            await self._refresh_availability()

    async def choose_barber(self, barber_id: str) -> None:
        self._require_idle()
        target = next_step(self.step, Event.CHOOSE_BARBER)
        barber = next((b for b in self.filtered_barbers if b.id == barber_id), None)
        if barber is None:
            self.notices.error("That professional is not available for this service")
            return
        self.draft.barber = barber
        self._enter(target)

    async def continue_to_datetime(self) -> None:
        self._require_idle()
        target = next_step(self.step, Event.CONTINUE_TO_DATETIME)
        resolved = await reconcile_service_for_barber(
            self.api, self.draft.service, self.draft.barber, self.gender
        )
        if resolved is None:
            self.notices.error("This professional does not offer the selected service")
            return
        self.draft.service = resolved
        self._enter(target)
        await self._refresh_availability()

    async def select_date(self, booking_date: date) -> None:
        self._require_idle()
        self._require_step(Step.DATETIME, "select a date")
        self.now = self._now_fn()
        if booking_date < self.now.date():
            self.notices.error("Please choose a date from today onward")
            return
        if booking_date != self.draft.date:
            self.draft.time = ""
        self.draft.date = booking_date
        self._sync_clock()
        await self._refresh_availability()

    def select_time(self, time_label: str) -> None:
        self._require_idle()
        self._require_step(Step.DATETIME, "select a time")
        # "14:00" picks the "2:00 PM" slot; the barber's own label is what gets booked
        wanted = normalize_time_to_hhmm(time_label)
        label = next(
            (
                t for t in self.filtered_available_times
                if t == time_label or (wanted is not None and normalize_time_to_hhmm(t) == wanted)
            ),
            None,
        )
        if label is None:
            self.notices.error("That time is no longer available")
            return
        self.draft.time = label

    def continue_to_payment(self) -> None:
        self._require_idle()
        target = next_step(self.step, Event.CONTINUE_TO_PAYMENT)
        if self.draft.date is None or not self.draft.time:
            self.notices.error("Please choose a date and time")
            return
        self._enter(target)

    def set_payment(
        self,
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        accept_cancellation_policy: Optional[bool] = None,
    ) -> None:
        self._require_idle()
        self._require_step(Step.PAYMENT, "choose a payment method")
        if payment_method is not None:
            if payment_method not in payment_options(self.draft.barber):
                self.notices.error("This professional does not accept that payment method")
                return
            self.draft.payment_method = payment_method
        if payment_reference is not None:
            self.draft.payment_reference = payment_reference.strip()
        if not needs_payment_reference(self.draft.payment_method):
            self.draft.payment_reference = ""
        if notes is not None:
            self.draft.notes = notes
        if accept_cancellation_policy is not None:
            self.draft.accept_cancellation_policy = accept_cancellation_policy

    # ────────────────────────────────────────────────────────────
    # Back navigation
    # ────────────────────────────────────────────────────────────

    async def back(self) -> None:
        self._require_idle()
        target = resolve_back(
            self.step,
            self.link,
            has_barber=self.draft.barber is not None,
            is_authenticated=self.is_authenticated,
            routes=self.routes,
        )
        for name in target.clear:
            if name == "gender":
                self.gender = None
            else:
                setattr(self.draft, name, None)

        if target.redirect_to:
            self._clock.stop()
            self.navigate(target.redirect_to)
            return

        self._enter(target.step)
        if target.step == Step.SERVICES:
            await self._reload_services()

    # ────────────────────────────────────────────────────────────
    # Submission
    # ────────────────────────────────────────────────────────────

    async def confirm(self) -> None:
        self._require_step(Step.PAYMENT, "confirm the booking")
        if self.loading:
            logger.info("Ignoring confirm while a submission is in flight")
            return

        try:
            check_ready(self.draft, self.session)
        except SignInRequiredError as e:
            self.notices.error(e.message)
            self.navigate(self.routes.sign_in)
            return
        except BookingValidationError as e:
            self.notices.error(e.message)
            return

        self.loading = True
        try:
            outcome = await submit_booking(
                self.api,
                self.draft,
                reschedule_id=self.link.reschedule_id,
                selected_gender=self.gender,
                shop_name=self.shop_name,
            )
        except BookingValidationError as e:
            self.notices.error(e.message)
            return
        finally:
            self.loading = False

        if not outcome.ok:
            self.notices.error(outcome.message)
            return

        self.notices.success(outcome.message, title=outcome.title)
        self.summary = outcome.summary
        self.completed = True
        self.draft = AppointmentDraft()
        self.close()
        self.navigate(self.routes.profile)

    # ────────────────────────────────────────────────────────────
    # Internals
    # ────────────────────────────────────────────────────────────

    async def _run(self, operation) -> None:
        try:
            await operation
        except InvalidTransitionError:
            raise
        except BookingFlowError as e:
            self.notices.error(e.message)

    def _require_step(self, step: Step, action: str) -> None:
        if self.step != step:
            raise InvalidTransitionError(
                f"Cannot {action} on the {self.step.value} step",
                step=self.step.value,
            )

    def _require_idle(self) -> None:
        """Selections are frozen while a submission is in flight."""
        if self.loading:
            raise InvalidTransitionError(
                "A booking is being submitted; wait for it to finish",
                step=self.step.value,
            )

    def _enter(self, step: Step) -> None:
        self.step = step
        self.scroll_anchor = "datetime" if step == Step.DATETIME else None
        if step != Step.DATETIME:
            self._availability.invalidate()
        self._sync_clock()

    def _sync_clock(self) -> None:
        """Run the minute clock exactly while the datetime step shows today's slots."""
        needs_clock = (
            self.step == Step.DATETIME
            and self.draft.date is not None
            and self.draft.date == self.today()
        )
        if needs_clock and not self._clock.running:
            self.now = self._now_fn()
            self._clock.start()
            self._prune_selected_time()
        elif not needs_clock and self._clock.running:
            self._clock.stop()

    def _on_tick(self, now: datetime) -> None:
        self.now = now
        self._prune_selected_time()

    def _prune_selected_time(self) -> None:
        if self.draft.time and self.draft.time not in self.filtered_available_times:
            logger.debug(f"Selected time {self.draft.time} is no longer available; clearing")
            self.draft.time = ""

    async def _reload_services(self) -> None:
        self.services = await load_services(self.api, gender=self.gender, barber=self.draft.barber)

    async def _reload_barbers(self) -> None:
        self.barbers_loading = True
        try:
            self.barbers = await load_barbers(self.api, gender=self.gender)
        finally:
            self.barbers_loading = False

    async def _refresh_availability(self) -> None:
        if self.draft.barber is None or self.draft.date is None:
            self.available_times = []
            return

        duration = self.draft.service.duration if self.draft.service else self.default_service_duration
        key = AvailabilityKey(self.draft.barber.id, self.draft.date, duration or self.default_service_duration)
        times = await self._availability.load(key)
        if times is None:
            return
        self.available_times = times
        self._prune_selected_time()

    # ────────────────────────────────────────────────────────────
    # Snapshot
    # ────────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        """JSON-ready view of the wizard. Drains pending notices."""
        barber = self.draft.barber
        service = self.draft.service
        visible_times = sort_slots(self.filtered_available_times)

        barber_view = None
        if barber is not None:
            photos, videos = split_media(barber)
            barber_view = barber.model_dump(by_alias=True)
            barber_view["title"] = professional_title(barber.gender)
            barber_view["photos"] = [m.model_dump(by_alias=True) for m in photos]
            barber_view["videos"] = [m.model_dump(by_alias=True) for m in videos]

        return {
            "step": self.step.value,
            "gender": self.gender,
            "services": [s.model_dump(by_alias=True) for s in self.services],
            "barbers": [
                {**b.model_dump(by_alias=True), "title": professional_title(b.gender)}
                for b in self.filtered_barbers
            ],
            "barbersLoading": self.barbers_loading,
            "selectedService": service.model_dump(by_alias=True) if service else None,
            "selectedBarber": barber_view,
            "selectedDate": self.draft.date.isoformat() if self.draft.date else None,
            "selectedTime": self.draft.time or None,
            "selectedStartsAt": (
                build_appointment_datetime(self.draft.date.isoformat(), self.draft.time).isoformat()
                if self.draft.date and self.draft.time
                else None
            ),
            "availableTimes": visible_times,
            "slotGroups": [
                {
                    "label": group["label"],
                    "items": [
                        {"value": t, "main": format_slot(t)[0], "sub": format_slot(t)[1]}
                        for t in group["items"]
                    ],
                }
                for group in group_slots(visible_times)
            ],
            "quickDays": [d.isoformat() for d in quick_days(self.today())],
            "paymentOptions": payment_options(barber),
            "paymentMethod": self.draft.payment_method,
            "paymentReference": self.draft.payment_reference or None,
            "notes": self.draft.notes,
            "acceptCancellationPolicy": self.draft.accept_cancellation_policy,
            "reschedule": self.link.reschedule_id,
            "genderImages": {
                "male": self.male_gender_image,
                "female": self.female_gender_image,
            },
            "scrollTo": self.scroll_anchor,
            "loading": self.loading,
            "completed": self.completed,
            "summary": self.summary.to_dict() if self.summary else None,
            "notices": [n.to_dict() for n in self.notices.drain()],
        }
