from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas.booking import AvailabilityCheckRequest, AvailabilityResponse, ConflictingBooking
from ..schemas.inventory import (
    BulkInventoryResult, BulkInventoryUpdate, InventoryAdjust, InventoryAdjustResponse,
    InventoryResponse, InventoryStatistics, InventoryUpdate,
)
from ..services.availability_service import check_inventory_availability
from ..services.inventory_service import InventoryService
from ..utils.dependencies import get_current_user, require_admin
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/listings", tags=["Inventory"])


@router.post("/inventory/bulk-update", response_model=BulkInventoryResult)
@limiter.limit(get_rate_limit("inventory_bulk"))
def bulk_update_inventory(
    request: Request,
    bulk_data: BulkInventoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Update inventory for many listings.
    Each listing succeeds or fails on its own; failures are reported per listing.
    """
    updates = [
        {"listing_id": item.listing_id, **item.changes()}
        for item in bulk_data.updates
    ]
    return InventoryService(db).bulk_update_inventory(updates, current_user)


@router.get("/{listing_id}/inventory", response_model=InventoryResponse)
def get_inventory(listing_id: str, db: Session = Depends(get_db)):
    return InventoryService(db).get_inventory(listing_id)


@router.put("/{listing_id}/inventory", response_model=InventoryResponse)
@limiter.limit(get_rate_limit("inventory_update"))
def update_inventory(
    request: Request,
    listing_id: str,
    inventory_data: InventoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update unit counts and booking-length limits (listing provider or admin)"""
    return InventoryService(db).update_inventory(listing_id, inventory_data.changes(), current_user)


@router.patch("/{listing_id}/inventory/adjust", response_model=InventoryAdjustResponse)
@limiter.limit(get_rate_limit("inventory_update"))
def adjust_inventory(
    request: Request,
    listing_id: str,
    adjust_data: InventoryAdjust,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Add or remove available units, clamped to [0, total_units]"""
    result = InventoryService(db).adjust_inventory(
        listing_id, adjust_data.adjustment, current_user, reason=adjust_data.reason
    )
    return InventoryAdjustResponse(
        inventory=InventoryResponse.model_validate(result["inventory"]),
        adjustment=result["adjustment"],
        reason=result["reason"],
        previous_available_units=result["previous_available_units"],
        new_available_units=result["new_available_units"],
    )


@router.get("/{listing_id}/inventory/stats", response_model=InventoryStatistics)
def get_inventory_statistics(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return InventoryService(db).get_inventory_statistics(listing_id, current_user)


@router.post("/{listing_id}/inventory/availability", response_model=AvailabilityResponse)
@limiter.limit(get_rate_limit("availability"))
def check_availability(
    request: Request,
    listing_id: str,
    check_data: AvailabilityCheckRequest,
    db: Session = Depends(get_db)
):
    """How many units are free for a date range"""
    result = check_inventory_availability(
        db, listing_id, check_data.start_date, check_data.end_date, check_data.units
    )
    return AvailabilityResponse(
        listing_id=result.listing_id,
        available=result.available,
        available_units=result.available_units,
        total_units=result.total_units,
        requested_units=result.requested_units,
        conflicting_bookings=[ConflictingBooking.model_validate(b) for b in result.conflicting_bookings],
    )
