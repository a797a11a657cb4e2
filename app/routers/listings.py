from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime
import logging

from ..database import get_db
from ..models.listing import Listing
from ..models.user import User
from ..schemas.calendar import (
    CalendarResponse, DateBlockRequest, DateBlockResponse, DateUnblockRequest,
    RangeAvailabilityResponse, TimeSlotsResponse,
)
from ..schemas.listing import ListingCreate, ListingResponse
from ..services.availability_service import get_listing_or_404
from ..services.calendar_service import CalendarService
from ..services.inventory_service import InventoryService
from ..services.permissions import ensure_can_manage_listing, is_admin
from ..services.exceptions import NotAuthorized
from ..services.reservation_service import ReservationService
from ..utils.db_helpers import listing_locks
from ..utils.dependencies import get_current_user, require_provider_or_admin
from ..utils.rate_limiter import limiter, get_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["Listings"])


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    listing_data: ListingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_provider_or_admin)
):
    """Create a listing together with its default inventory record"""
    provider_id = current_user.id
    if listing_data.provider_id and listing_data.provider_id != current_user.id:
        if not is_admin(current_user):
            raise NotAuthorized("Only admins can create listings for another provider")
        provider = db.query(User).filter(User.id == listing_data.provider_id).first()
        if not provider:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Provider not found"
            )
        provider_id = provider.id

    listing = Listing(
        name=listing_data.name,
        description=listing_data.description,
        price=listing_data.price,
        provider_id=provider_id,
    )
    db.add(listing)
    db.flush()

    try:
        InventoryService(db).create_default_inventory(
            listing,
            total_units=listing_data.total_units,
            min_booking_days=listing_data.min_booking_days,
            max_booking_days=listing_data.max_booking_days,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(listing)
    logger.info(f"Listing {listing.id} created by {current_user.id}")
    return ListingResponse.model_validate(listing)


@router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str, db: Session = Depends(get_db)):
    return ListingResponse.model_validate(get_listing_or_404(db, listing_id))


@router.delete("/{listing_id}")
def delete_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a listing with its inventory, blocked dates and bookings"""
    listing = get_listing_or_404(db, listing_id)
    ensure_can_manage_listing(current_user, listing, "delete this listing")

    db.delete(listing)
    db.commit()
    listing_locks.discard(listing_id)

    logger.info(f"Listing {listing_id} deleted by {current_user.id}")
    return {"message": "Listing deleted", "id": listing_id}


# ================================
# Calendar
# ================================

@router.post("/{listing_id}/block-dates", response_model=DateBlockResponse)
@limiter.limit(get_rate_limit("calendar_update"))
def block_dates(
    request: Request,
    listing_id: str,
    block_data: DateBlockRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = CalendarService(db).block_dates(
        listing_id, block_data.dates, current_user, reason=block_data.reason
    )
    return DateBlockResponse(
        listing_id=result.listing_id,
        changed_dates=result.changed_dates,
        changed_count=len(result.changed_dates),
        total_unavailable_dates=result.total_unavailable_dates,
        reason=result.reason,
    )


@router.post("/{listing_id}/unblock-dates", response_model=DateBlockResponse)
@limiter.limit(get_rate_limit("calendar_update"))
def unblock_dates(
    request: Request,
    listing_id: str,
    unblock_data: DateUnblockRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = CalendarService(db).unblock_dates(listing_id, unblock_data.dates, current_user)
    return DateBlockResponse(
        listing_id=result.listing_id,
        changed_dates=result.changed_dates,
        changed_count=len(result.changed_dates),
        total_unavailable_dates=result.total_unavailable_dates,
    )


@router.get("/{listing_id}/calendar", response_model=CalendarResponse)
def get_calendar(
    listing_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9998),
    db: Session = Depends(get_db)
):
    """Day-by-day availability. Defaults to the current month"""
    return CalendarService(db).get_calendar(listing_id, start_date, end_date, month, year)


@router.get("/{listing_id}/availability", response_model=RangeAvailabilityResponse)
def check_date_range(
    listing_id: str,
    check_in: datetime = Query(...),
    check_out: datetime = Query(...),
    db: Session = Depends(get_db)
):
    """Blocked days inside [check_in, check_out)"""
    result = CalendarService(db).check_date_range(listing_id, check_in, check_out)
    if result.is_available:
        message = "All dates are available"
    else:
        message = f"{len(result.conflicting_dates)} date(s) in the range are unavailable"
    return RangeAvailabilityResponse(
        listing_id=result.listing_id,
        check_in_date=result.check_in_date,
        check_out_date=result.check_out_date,
        is_available=result.is_available,
        conflicting_dates=result.conflicting_dates,
        message=message,
    )


@router.get("/{listing_id}/time-slots", response_model=TimeSlotsResponse)
def get_time_slots(
    listing_id: str,
    day: date = Query(...),
    db: Session = Depends(get_db)
):
    """Hourly slots still open for single-date bookings"""
    slots = ReservationService(db).list_available_time_slots(listing_id, day)
    return TimeSlotsResponse(listing_id=listing_id, day=day, slots=slots)
