"""
Booking domain errors.

Every failure of the inventory/booking/calendar services is one of these.
They are request-scoped and never fatal to the process; the HTTP layer turns
them into `{"detail", "code", "context"}` responses (see app.main).
"""

from typing import Any, Dict, Optional


class BookingDomainError(Exception):
    status_code = 400
    code = "booking_error"
    default_message = "Booking request failed"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


# ---------- NotFound (404) ----------

class NotFoundError(BookingDomainError):
    status_code = 404
    code = "not_found"


class ListingNotFound(NotFoundError):
    code = "listing_not_found"
    default_message = "Listing not found"


class BookingNotFound(NotFoundError):
    code = "booking_not_found"
    default_message = "Booking not found"


class InventoryNotConfigured(NotFoundError):
    code = "inventory_not_configured"
    default_message = "Listing inventory not configured"


# ---------- ValidationFailure (400) ----------

class ValidationFailure(BookingDomainError):
    status_code = 400
    code = "validation_failed"


class InvalidInventoryConfiguration(ValidationFailure):
    code = "invalid_inventory_configuration"
    default_message = "Invalid inventory configuration"


class BookingTooShort(ValidationFailure):
    code = "booking_too_short"
    default_message = "Booking is shorter than the minimum duration"


class BookingTooLong(ValidationFailure):
    code = "booking_too_long"
    default_message = "Booking is longer than the maximum duration"


class InvalidUnitCount(ValidationFailure):
    code = "invalid_unit_count"
    default_message = "Units must be between 1 and 100"


class InvalidDateRange(ValidationFailure):
    code = "invalid_date_range"
    default_message = "Check-out date must be after check-in date"


class BookingDateInPast(ValidationFailure):
    code = "booking_date_in_past"
    default_message = "Booking date must be in the future"


class NoNewDatesToBlock(ValidationFailure):
    code = "no_new_dates_to_block"
    default_message = "All specified dates are already blocked"


class NoDatesWereBlocked(ValidationFailure):
    code = "no_dates_were_blocked"
    default_message = "None of the specified dates were blocked"


# ---------- Conflict (409) ----------

class ConflictError(BookingDomainError):
    status_code = 409
    code = "conflict"


class InsufficientInventory(ConflictError):
    code = "insufficient_inventory"

    def __init__(self, available: int, requested: int, message: Optional[str] = None):
        super().__init__(
            message or f"Insufficient inventory. Available: {available}, Requested: {requested}",
            available_units=available,
            requested_units=requested,
        )
        self.available = available
        self.requested = requested


class DuplicateBooking(ConflictError):
    code = "duplicate_booking"
    default_message = "You already have a booking for this listing on this date"


class SlotUnavailable(ConflictError):
    code = "slot_unavailable"
    default_message = "This time slot is not available"


class InvalidStatusTransition(ConflictError):
    code = "invalid_status_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change status from {current} to {requested}",
            current_status=current,
            requested_status=requested,
        )


class AlreadyCancelled(ConflictError):
    code = "already_cancelled"
    default_message = "Booking is already cancelled"


class CannotCancelCompleted(ConflictError):
    code = "cannot_cancel_completed"
    default_message = "Cannot cancel a completed booking"


class BookingNotYetOccurred(ConflictError):
    code = "booking_not_yet_occurred"
    default_message = "Cannot complete a booking that has not occurred yet"


class BookingNotEditable(ConflictError):
    code = "booking_not_editable"
    default_message = "Only pending or confirmed bookings can be changed"


class ResourceBusy(ConflictError):
    code = "resource_busy"
    default_message = "Listing is being updated by another request, please retry"


# ---------- Authorization (403) ----------

class NotAuthorized(BookingDomainError):
    status_code = 403
    code = "not_authorized"
    default_message = "Not authorized to access this resource"
