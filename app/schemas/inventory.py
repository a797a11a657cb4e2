from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class InventoryFields(BaseModel):
    """
    Partial inventory update. Bounds are checked by InventoryService so a bad
    item in a bulk request fails alone instead of rejecting the whole batch.
    """
    total_units: Optional[int] = None
    available_units: Optional[int] = None
    min_booking_days: Optional[int] = None
    max_booking_days: Optional[int] = None

    def changes(self) -> dict:
        return self.model_dump(
            include={"total_units", "available_units", "min_booking_days", "max_booking_days"},
            exclude_none=True,
        )


class InventoryUpdate(InventoryFields):
    pass


class InventoryAdjust(BaseModel):
    adjustment: int = Field(..., ge=-100, le=100, description="Delta applied to available units")
    reason: Optional[str] = Field(None, max_length=500)


class BulkInventoryItem(InventoryFields):
    listing_id: str = Field(..., min_length=1, max_length=36)


class BulkInventoryUpdate(BaseModel):
    updates: List[BulkInventoryItem] = Field(..., min_length=1, max_length=500)


class InventoryResponse(BaseModel):
    listing_id: str
    total_units: int
    available_units: int
    min_booking_days: int
    max_booking_days: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryAdjustResponse(BaseModel):
    inventory: InventoryResponse
    adjustment: int
    reason: Optional[str] = None
    previous_available_units: int
    new_available_units: int


class BulkInventoryFailure(BaseModel):
    listing_id: str
    code: str
    error: str


class BulkInventoryResult(BaseModel):
    success: bool
    succeeded_count: int
    failures: List[BulkInventoryFailure] = []


class InventoryStatistics(BaseModel):
    listing_id: str
    total_units: int
    available_units: int
    booked_units: int
    utilization_rate: float
    upcoming_bookings: int
    revenue: float
