# Models package
from .user import User, UserRole
from .listing import Listing, PropertyInventory, ListingUnavailableDate
from .booking import Booking, BookingStatus, ACTIVE_STATUSES, TERMINAL_STATUSES

__all__ = [
    "User", "UserRole",
    "Listing", "PropertyInventory", "ListingUnavailableDate",
    "Booking", "BookingStatus", "ACTIVE_STATUSES", "TERMINAL_STATUSES",
]
