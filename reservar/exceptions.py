"""
Exceptions for the booking flow.

Raised by the catalog, submission and wizard modules. The wizard turns
every BookingFlowError except InvalidTransitionError into a user-facing
notice; InvalidTransitionError reaches the HTTP layer as a 409.
"""
from typing import Any, Optional


class BookingFlowError(Exception):
    """Base exception for all booking flow errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BookingValidationError(BookingFlowError):
    """Raised when the draft is incomplete or a selection is not allowed."""
    pass


class SignInRequiredError(BookingValidationError):
    """Raised when a booking is confirmed without an authenticated session."""
    pass


class DataIntegrityError(BookingFlowError):
    """Raised when upstream data cannot be interpreted without guessing (e.g. barber gender)."""
    pass


class InvalidTransitionError(BookingFlowError):
    """Raised when an event is not allowed in the wizard's current step."""
    def __init__(self, message: str, step: Optional[str] = None, event: Optional[str] = None):
        self.step = step
        self.event = event
        super().__init__(message)


class SalonApiError(BookingFlowError):
    """Raised when the salon API returns a non-ok response or cannot be reached."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
        payload: Any = None,
    ):
        self.status_code = status_code
        self.server_message = server_message
        self.payload = payload
        super().__init__(message)

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None
