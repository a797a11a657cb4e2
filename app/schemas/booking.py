from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
import re

from ..models.booking import BookingStatus


def _strip_markup(v):
    """Remove script tags and inline event handlers from free text"""
    if isinstance(v, str):
        v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
        v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
        v = v.strip()
    return v


class InventoryBookingCreate(BaseModel):
    listing_id: str = Field(..., min_length=1, max_length=36)
    start_date: datetime
    end_date: datetime
    units: int = Field(1, ge=1, le=100, description="Number of units to reserve")
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_notes(cls, v):
        return _strip_markup(v)


class LegacyBookingCreate(BaseModel):
    """Single-date booking that does not consume inventory units"""
    listing_id: str = Field(..., min_length=1, max_length=36)
    date: datetime
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_notes(cls, v):
        return _strip_markup(v)


class BookingUpdate(BaseModel):
    """Reschedule a single-date booking and/or replace its notes"""
    date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_notes(cls, v):
        return _strip_markup(v)

    @model_validator(mode='after')
    def require_a_change(self):
        if not self.model_fields_set & {"date", "notes"}:
            raise ValueError("Provide date or notes to update")
        return self


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    id: str
    user_id: str
    listing_id: str
    date: datetime
    end_date: Optional[datetime] = None
    units: int
    status: BookingStatus
    notes: Optional[str] = None
    inventory_reserved: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InventoryBookingResponse(BaseModel):
    booking: BookingResponse
    remaining_units: int


class ConflictingBooking(BaseModel):
    """Public view of a booking that holds units in the requested range"""
    id: str
    date: datetime
    end_date: Optional[datetime] = None
    units: int
    status: BookingStatus

    class Config:
        from_attributes = True


class AvailabilityCheckRequest(BaseModel):
    start_date: datetime
    end_date: datetime
    units: int = Field(1, ge=1, le=100)


class AvailabilityResponse(BaseModel):
    listing_id: str
    available: bool
    available_units: int
    total_units: int
    requested_units: int
    conflicting_bookings: List[ConflictingBooking] = []
