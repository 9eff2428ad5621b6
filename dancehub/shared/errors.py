"""Error types shared by the onboarding, scheduling and booking flows."""
from typing import Optional


class DanceHubError(Exception):
    """Base error. `message` is safe to show to the user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StepValidationError(DanceHubError):
    """Local field validation failed; blocks step advancement."""

    def __init__(self, field_errors: dict[str, str], message: str = "Please fix the validation errors"):
        self.field_errors = dict(field_errors)
        super().__init__(message)


class ProvisioningError(DanceHubError):
    """Payment account creation failed for a reason other than 'already exists'."""


class PersistenceError(DanceHubError):
    """A step-save call to the payment provider failed."""


class AvailabilityInputError(DanceHubError):
    """Availability input rejected locally before any network call."""


class BookingError(DanceHubError):
    """Booking could not be placed (no slot, not signed in, or create-booking failed)."""


class PaymentError(DanceHubError):
    """Payment confirmation failed; the booking stays provisional."""


class GatewayError(DanceHubError):
    """A remote collaborator answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
