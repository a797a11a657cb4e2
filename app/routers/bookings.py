from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..database import get_db
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..schemas.booking import (
    BookingResponse, BookingStatusUpdate, BookingUpdate, InventoryBookingCreate,
    InventoryBookingResponse, LegacyBookingCreate,
)
from ..schemas.pagination import PaginatedResponse
from ..services.availability_service import get_listing_or_404
from ..services.booking_query_service import BookingQueryService
from ..services.booking_status_service import BookingStatusService
from ..services.exceptions import BookingNotFound, NotAuthorized
from ..services.permissions import can_act_on_booking
from ..services.reservation_service import ReservationService
from ..utils.dependencies import get_current_user
from ..utils.rate_limiter import limiter, get_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.post("/inventory", response_model=InventoryBookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("booking_create"))
def create_inventory_booking(
    request: Request,
    booking_data: InventoryBookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Reserve units on a listing for a date range"""
    result = ReservationService(db).create_inventory_booking(
        user=current_user,
        listing_id=booking_data.listing_id,
        start_date=booking_data.start_date,
        end_date=booking_data.end_date,
        units=booking_data.units,
        notes=booking_data.notes,
    )
    return InventoryBookingResponse(
        booking=BookingResponse.model_validate(result.booking),
        remaining_units=result.remaining_units,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("booking_create"))
def create_booking(
    request: Request,
    booking_data: LegacyBookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Single-date booking (no inventory units consumed)"""
    booking = ReservationService(db).create_legacy_booking(
        user=current_user,
        listing_id=booking_data.listing_id,
        booking_date=booking_data.date,
        notes=booking_data.notes,
    )
    return booking


def _booking_page(result) -> PaginatedResponse[BookingResponse]:
    return PaginatedResponse[BookingResponse].create(
        items=[BookingResponse.model_validate(b) for b in result.bookings],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("", response_model=PaginatedResponse[BookingResponse])
@router.get("/", response_model=PaginatedResponse[BookingResponse])
def list_bookings(
    user_id: Optional[str] = Query(None, description="Admins, or providers filtering by their own listing"),
    listing_id: Optional[str] = Query(None),
    status: Optional[BookingStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Bookings visible to the caller, ordered by date"""
    result = BookingQueryService(db).list_bookings(
        current_user,
        user_id=user_id,
        listing_id=listing_id,
        status=status.value if status else None,
        page=page,
        page_size=page_size,
    )
    return _booking_page(result)


@router.get("/user/{user_id}", response_model=PaginatedResponse[BookingResponse])
def list_user_bookings(
    user_id: str,
    status: Optional[BookingStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """One customer's bookings (the customer themself or an admin)"""
    result = BookingQueryService(db).list_user_bookings(
        current_user,
        user_id,
        status=status.value if status else None,
        page=page,
        page_size=page_size,
    )
    return _booking_page(result)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise BookingNotFound(booking_id=booking_id)

    listing = get_listing_or_404(db, booking.listing_id)
    if not can_act_on_booking(current_user, booking, listing):
        raise NotAuthorized("Not authorized to view this booking", booking_id=booking_id)

    return booking


@router.put("/{booking_id}", response_model=BookingResponse)
@limiter.limit(get_rate_limit("booking_update"))
def update_booking(
    request: Request,
    booking_id: str,
    update_data: BookingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Move a single-date booking to another time and/or edit its notes"""
    changes = update_data.model_dump(exclude_unset=True)
    return ReservationService(db).update_booking(booking_id, current_user, changes)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
@limiter.limit(get_rate_limit("booking_update"))
def update_booking_status(
    request: Request,
    booking_id: str,
    status_data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Move a booking through pending -> confirmed -> completed, or cancel it"""
    return BookingStatusService(db).update_status(booking_id, status_data.status, current_user)


@router.delete("/{booking_id}", response_model=BookingResponse)
@limiter.limit(get_rate_limit("booking_cancel"))
def cancel_booking(
    request: Request,
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel a booking and release its inventory units"""
    booking = ReservationService(db).cancel_booking(booking_id, current_user)
    logger.info(f"Booking {booking_id} cancelled by {current_user.id}")
    return booking
