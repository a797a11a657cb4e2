"""
Booking Query Service

Role-scoped, paginated reads of the booking ledger. Customers and providers
see their own bookings; a provider filtering by one of their listings sees
every booking on it; admins see everything.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Query, Session

from ..models.booking import Booking
from ..models.user import User
from .availability_service import get_listing_or_404
from .exceptions import NotAuthorized
from .permissions import can_manage_listing, can_view_user_bookings, is_admin


@dataclass
class BookingPage:
    bookings: List[Booking]
    total: int
    page: int
    page_size: int


def paginate_query(query: Query, page: int, page_size: int):
    """(rows on `page`, total row count)"""
    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


class BookingQueryService:
    def __init__(self, db: Session):
        self.db = db

    def _page(self, query: Query, status: Optional[str], page: int, page_size: int) -> BookingPage:
        if status:
            query = query.filter(Booking.status == status)
        query = query.order_by(Booking.date.asc(), Booking.id.asc())
        rows, total = paginate_query(query, page, page_size)
        return BookingPage(bookings=rows, total=total, page=page, page_size=page_size)

    def list_bookings(
        self,
        user: User,
        user_id: Optional[str] = None,
        listing_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> BookingPage:
        """
        Bookings visible to `user`, oldest date first.

        A non-admin's `user_id` filter is replaced by their own id, unless
        they filter by a listing they manage.

        Raises:
            ListingNotFound: listing_id filter names an unknown listing
        """
        query = self.db.query(Booking)

        if listing_id:
            listing = get_listing_or_404(self.db, listing_id)
            query = query.filter(Booking.listing_id == listing_id)
            sees_listing = can_manage_listing(user, listing)
        else:
            sees_listing = False

        if is_admin(user) or sees_listing:
            if user_id:
                query = query.filter(Booking.user_id == user_id)
        else:
            query = query.filter(Booking.user_id == user.id)

        return self._page(query, status, page, page_size)

    def list_user_bookings(
        self,
        user: User,
        user_id: str,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> BookingPage:
        """
        Raises:
            NotAuthorized: caller is neither that user nor an admin
        """
        if not can_view_user_bookings(user, user_id):
            raise NotAuthorized("Not authorized to access these bookings", user_id=user_id)
        query = self.db.query(Booking).filter(Booking.user_id == user_id)
        return self._page(query, status, page, page_size)
