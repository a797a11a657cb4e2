"""
Authorization rules shared by the listing, inventory, calendar and booking services.
"""

from ..models.user import User
from ..models.listing import Listing
from ..models.booking import Booking
from .exceptions import NotAuthorized


def is_admin(user: User) -> bool:
    return user is not None and user.is_admin


def can_manage_listing(user: User, listing: Listing) -> bool:
    """Admins and the listing's own provider may change inventory and calendar."""
    return is_admin(user) or (user is not None and listing.provider_id == user.id)


def can_act_on_booking(user: User, booking: Booking, listing: Listing) -> bool:
    """Admins, the booking owner and the provider of the booked listing."""
    if user is None:
        return False
    return is_admin(user) or booking.user_id == user.id or listing.provider_id == user.id


def ensure_can_manage_listing(user: User, listing: Listing, action: str = "manage this listing"):
    if not can_manage_listing(user, listing):
        raise NotAuthorized(f"Not authorized to {action}", listing_id=listing.id)


def ensure_admin(user: User, action: str = "perform this action"):
    if not is_admin(user):
        raise NotAuthorized(f"Only admins can {action}")


def can_edit_booking(user: User, booking: Booking) -> bool:
    """Rescheduling and notes belong to the customer who booked (or an admin)."""
    return is_admin(user) or (user is not None and booking.user_id == user.id)


def can_view_user_bookings(user: User, user_id: str) -> bool:
    return is_admin(user) or (user is not None and user.id == user_id)
