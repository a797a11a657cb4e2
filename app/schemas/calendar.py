from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime


class DateBlockRequest(BaseModel):
    # Datetimes are accepted and truncated to the UTC calendar day
    dates: List[datetime] = Field(..., min_length=1, max_length=366)
    reason: Optional[str] = Field(None, max_length=255)


class DateUnblockRequest(BaseModel):
    dates: List[datetime] = Field(..., min_length=1, max_length=366)


class DateBlockResponse(BaseModel):
    listing_id: str
    changed_dates: List[date]
    changed_count: int
    total_unavailable_dates: int
    reason: Optional[str] = None


class CalendarDay(BaseModel):
    date: date
    day_of_week: int  # 0 = Sunday
    day_name: str
    is_available: bool


class CalendarSummary(BaseModel):
    total_days: int
    available_days: int
    unavailable_days: int


class CalendarResponse(BaseModel):
    listing_id: str
    listing_name: str
    start_date: date
    end_date: date
    calendar: List[CalendarDay]
    summary: CalendarSummary


class RangeAvailabilityResponse(BaseModel):
    listing_id: str
    check_in_date: date
    check_out_date: date
    is_available: bool
    conflicting_dates: List[date]
    message: str


class TimeSlotsResponse(BaseModel):
    listing_id: str
    day: date
    slots: List[datetime]
