"""
Booking submission.

Turns a complete appointment draft into exactly one call to the salon
API: create a new appointment, or reschedule an existing one when the
flow was opened with ?reschedule=<id>. Guards run before any network
call; failures come back as an outcome carrying the message to show,
with the draft left untouched so the client can retry.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from .catalog import needs_payment_reference, reconcile_service_for_barber
from .exceptions import BookingValidationError, SalonApiError, SignInRequiredError
from .models import (
    AppointmentCreate,
    AppointmentDraft,
    AppointmentReschedule,
    BookingSummary,
    UserSession,
)
from .salon_api import SalonApiClient
from .time_slots import format_time_12h

logger = logging.getLogger(__name__)

MODE_BOOKED = "booked"
MODE_RESCHEDULED = "rescheduled"

SIGN_IN_REQUIRED_MESSAGE = "You must sign in to book"
INCOMPLETE_DRAFT_MESSAGE = "Please complete all fields, including the payment method"
POLICY_NOT_ACCEPTED_MESSAGE = "Please accept the 24-hour cancellation policy to continue"
SERVICE_NOT_OFFERED_MESSAGE = "The selected service is not offered by this professional"
TRANSPORT_FAILURE_MESSAGE = "Error processing booking"

SUCCESS_TITLES = {
    MODE_BOOKED: "Booking confirmed",
    MODE_RESCHEDULED: "Appointment rescheduled",
}
FAILURE_FALLBACKS = {
    MODE_BOOKED: "Error booking appointment",
    MODE_RESCHEDULED: "Error rescheduling appointment",
}


@dataclass
class SubmissionOutcome:
    ok: bool
    mode: str
    message: str
    title: Optional[str] = None
    appointment: Optional[dict] = None
    summary: Optional[BookingSummary] = None


def check_ready(draft: AppointmentDraft, session: Optional[UserSession]) -> None:
    """
    Raise when the draft may not be sent.

    Order matters: sign-in first, then missing fields, then the
    cancellation policy checkbox.
    """
    if session is None:
        raise SignInRequiredError(SIGN_IN_REQUIRED_MESSAGE)
    if draft.missing_fields():
        raise BookingValidationError(INCOMPLETE_DRAFT_MESSAGE)
    if not draft.accept_cancellation_policy:
        raise BookingValidationError(POLICY_NOT_ACCEPTED_MESSAGE)


def build_summary(draft: AppointmentDraft) -> BookingSummary:
    return BookingSummary(
        professional=draft.barber.display_name,
        service=draft.service.name,
        date=draft.date.isoformat(),
        time=format_time_12h(draft.time),
        price=draft.service.price,
    )


def failure_message(error: SalonApiError, mode: str) -> str:
    if error.server_message:
        return error.server_message
    if error.is_transport_error:
        return TRANSPORT_FAILURE_MESSAGE
    return FAILURE_FALLBACKS[mode]


async def submit_booking(
    api: SalonApiClient,
    draft: AppointmentDraft,
    *,
    reschedule_id: Optional[str] = None,
    selected_gender: Optional[str] = None,
    shop_name: str = "JBBarbershop",
) -> SubmissionOutcome:
    """
    Send the draft to the salon API.

    The caller must have run check_ready(). The draft is copied before the
    first await, so edits that land while the request is in flight never
    reach the payload. Before sending, the selected service is re-resolved
    against the selected barber so the serviceId always belongs to the
    barberId.

    Raises:
        BookingValidationError: the barber does not offer the selected service
    """
    mode = MODE_RESCHEDULED if reschedule_id else MODE_BOOKED
    draft = replace(draft)

    service = await reconcile_service_for_barber(api, draft.service, draft.barber, selected_gender)
    if service is None:
        raise BookingValidationError(SERVICE_NOT_OFFERED_MESSAGE)
    draft.service = service

    date_str = draft.date.isoformat()
    reference = None
    if needs_payment_reference(draft.payment_method):
        reference = draft.payment_reference.strip() or None

    try:
        if reschedule_id:
            logger.info(f"Rescheduling appointment {reschedule_id} to {date_str} {draft.time}")
            appointment = await api.reschedule_appointment(
                reschedule_id,
                AppointmentReschedule(date=date_str, time=draft.time),
            )
        else:
            logger.info(
                f"Booking service {draft.service.id} with barber {draft.barber.id} on {date_str} {draft.time}"
            )
            appointment = await api.create_appointment(
                AppointmentCreate(
                    barber_id=draft.barber.id,
                    service_id=draft.service.id,
                    date=date_str,
                    time=draft.time,
                    payment_method=draft.payment_method,
                    payment_reference=reference,
                    notes=draft.notes,
                )
            )
    except SalonApiError as e:
        logger.error(f"Submission failed ({mode}): status={e.status_code} message={e.message}")
        return SubmissionOutcome(ok=False, mode=mode, message=failure_message(e, mode))

    return SubmissionOutcome(
        ok=True,
        mode=mode,
        title=SUCCESS_TITLES[mode],
        message=f"Thanks for being part of {shop_name}.",
        appointment=appointment,
        summary=build_summary(draft),
    )
