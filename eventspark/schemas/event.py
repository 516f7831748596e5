from datetime import date as date_type
from datetime import datetime
from datetime import time as time_type
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PricingRule(BaseModel):
    threshold: int = Field(..., ge=0, description="Seats-remaining threshold.")
    percentage: float = Field(..., ge=0, description="Price increase percentage.")
    description: Optional[str] = None


class EventBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str
    date: date_type
    time: time_type
    venue: str
    category: str
    image_url: Optional[str] = None
    total_seats: int = Field(..., ge=0, description="Total seats must not be negative.")
    ticket_price: Decimal = Field(
        Decimal("0"), ge=0, decimal_places=2, description="Base ticket price."
    )
    dynamic_pricing_enabled: bool = False
    pricing_rules: List[PricingRule] = []

    @field_validator("name", "venue", "category", mode="before")  # type: ignore[misc]
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    date: Optional[date_type] = None
    time: Optional[time_type] = None
    venue: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    total_seats: Optional[int] = Field(None, ge=0)
    ticket_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    dynamic_pricing_enabled: Optional[bool] = None
    pricing_rules: Optional[List[PricingRule]] = None


class Event(EventBase):
    id: int
    created_by: int
    sold_tickets: int
    revenue: Decimal
    available_seats: int
    current_ticket_price: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EventSummary(BaseModel):
    """Trimmed event info returned alongside bookings."""

    id: int
    name: str
    date: date_type
    time: time_type
    venue: str

    model_config = ConfigDict(from_attributes=True)


class SellTicketsRequest(BaseModel):
    quantity: int = Field(1, gt=0, description="Tickets to sell.")


class SellTicketsResult(BaseModel):
    event: Event
    sold_quantity: int
    ticket_price: Decimal
    total_revenue: Decimal
