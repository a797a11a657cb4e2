from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .inventory import InventoryResponse


class ListingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price: Decimal = Field(Decimal("0"), ge=0)
    # Admins may create a listing on behalf of a provider
    provider_id: Optional[str] = Field(None, max_length=36)
    total_units: Optional[int] = Field(None, ge=1, le=100)
    min_booking_days: Optional[int] = Field(None, ge=1, le=365)
    max_booking_days: Optional[int] = Field(None, ge=1, le=365)


class ListingResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    provider_id: str
    is_active: bool
    inventory: Optional[InventoryResponse] = None
    created_at: datetime

    class Config:
        from_attributes = True
