# Services package
from .availability_service import (
    DurationCheck, AvailabilityResult,
    validate_booking_duration, check_inventory_availability,
    active_bookings_query, overlapping_bookings_query,
)
from .inventory_service import InventoryService, validate_inventory_values
from .reservation_service import ReservationService, ReservationResult
from .booking_query_service import BookingQueryService, BookingPage
from .booking_status_service import BookingStatusService, ALLOWED_TRANSITIONS, can_transition
from .calendar_service import CalendarService, DateBlockResult, RangeAvailability, calendar_days

__all__ = [
    "DurationCheck", "AvailabilityResult",
    "validate_booking_duration", "check_inventory_availability",
    "active_bookings_query", "overlapping_bookings_query",
    "InventoryService", "validate_inventory_values",
    "ReservationService", "ReservationResult",
    "BookingQueryService", "BookingPage",
    "BookingStatusService", "ALLOWED_TRANSITIONS", "can_transition",
    "CalendarService", "DateBlockResult", "RangeAvailability", "calendar_days",
]
