from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus, PaymentStatus
from .event import Event, EventSummary


class BookingCreate(BaseModel):
    event_id: int
    seat_number: str = Field(..., min_length=2, max_length=8)


class BulkBookingCreate(BaseModel):
    event_id: int
    seat_numbers: List[str] = Field(..., description="Seats to reserve.")


class PaymentRequest(BaseModel):
    payment_method: str = Field("card", max_length=50)


class Booking(BaseModel):
    id: int
    event_id: int
    user_id: int
    seat_number: str
    ticket_price: Decimal
    payment_status: PaymentStatus
    status: BookingStatus
    qr_code: str
    booking_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingWithEvent(Booking):
    event: EventSummary


class BookingResult(BaseModel):
    booking: Booking
    event: EventSummary


class BulkBookingResult(BaseModel):
    bookings: List[Booking]
    event: EventSummary


class PaymentResult(BaseModel):
    booking: Booking
    message: str


class SeatStatus(BaseModel):
    seat_number: str
    is_available: bool


class SeatAvailability(BaseModel):
    event: Event
    available_seats: List[SeatStatus]
    total_seats: int
    sold_tickets: int
    current_price: Decimal
