from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.api import deps
from eventspark.core.errors import PaymentFailedError
from eventspark.middleware.monitoring import metrics
from eventspark.models.user import User
from eventspark.schemas.booking import (
    Booking,
    BookingCreate,
    BookingResult,
    BookingWithEvent,
    BulkBookingCreate,
    BulkBookingResult,
    PaymentRequest,
    PaymentResult,
    SeatAvailability,
)
from eventspark.services import booking_service
from eventspark.services.notifications import Notifier
from eventspark.services.payment import PaymentGateway

router = APIRouter()


@router.get("/event/{event_id}/seats", response_model=SeatAvailability)  # type: ignore[misc]
async def read_event_seats(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.get_current_active_user),
) -> SeatAvailability:
    """
    **Seat Map**

    Every seat of the event in row order (A1..A10, B1..), flagged
    `is_available` unless an active booking holds it, plus the current price.
    """
    return await booking_service.list_available_seats(db, event_id)


@router.post(
    "/", response_model=BookingResult, status_code=status.HTTP_201_CREATED
)  # type: ignore[misc]
async def create_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_in: BookingCreate,
    current_user: User = Depends(deps.get_current_active_user),
) -> BookingResult:
    """
    **Book a Seat**

    Reserves one seat at the current (possibly dynamic) price. The booking
    starts with `payment_status = pending`.

    **Errors:**
    - `400`: Unknown seat label
    - `404`: Event not found
    - `409`: Seat already booked, or event sold out
    """
    result = await booking_service.create_booking(
        db, booking_in.event_id, booking_in.seat_number, current_user.id
    )
    metrics.seats_booked_total.labels(kind="single").inc()
    return result


@router.post(
    "/bulk", response_model=BulkBookingResult, status_code=status.HTTP_201_CREATED
)  # type: ignore[misc]
async def create_bulk_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_in: BulkBookingCreate,
    current_user: User = Depends(deps.get_current_active_user),
) -> BulkBookingResult:
    """
    **Book Several Seats**

    All or nothing: either every listed seat is booked or none is. All seats
    are priced at the price in force before the request.

    **Example Request:**
    ```json
    {"event_id": 1, "seat_numbers": ["A1", "A2", "A3"]}
    ```

    **Errors:**
    - `400`: Empty list, duplicates, unknown seats or too many seats
    - `404`: Event not found
    - `409`: Not enough seats available, or `Seats already booked: A1, A2`
    """
    result = await booking_service.create_bulk_booking(
        db, booking_in.event_id, booking_in.seat_numbers, current_user.id
    )
    metrics.seats_booked_total.labels(kind="bulk").inc(len(result.bookings))
    return result


@router.post("/{booking_id}/payment", response_model=PaymentResult)  # type: ignore[misc]
async def pay_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: int,
    payment_in: PaymentRequest,
    current_user: User = Depends(deps.get_current_active_user),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
    notifier: Notifier = Depends(deps.get_notifier),
) -> PaymentResult:
    """
    **Pay for a Booking**

    Settles a pending booking. On success a confirmation email with the
    printable ticket is queued.

    **Errors:**
    - `402`: Payment failed; the booking is marked `failed`
    - `403`: Booking belongs to another user
    - `404`: Booking not found
    - `409`: Booking is not pending payment
    """
    try:
        booking = await booking_service.settle_payment(
            db,
            booking_id,
            current_user.id,
            payment_in.payment_method,
            gateway,
            notifier,
        )
    except PaymentFailedError:
        metrics.payments_total.labels(status="failed").inc()
        raise
    metrics.payments_total.labels(status="completed").inc()
    return PaymentResult(
        booking=Booking.model_validate(booking), message="Payment successful"
    )


@router.get("/me", response_model=List[BookingWithEvent])  # type: ignore[misc]
async def read_my_bookings(
    db: AsyncSession = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(deps.get_current_active_user),
) -> List[BookingWithEvent]:
    """
    The caller's bookings, most recent first.
    """
    bookings = await booking_service.get_user_bookings(
        db, current_user.id, skip=skip, limit=limit
    )
    return [BookingWithEvent.model_validate(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingWithEvent)  # type: ignore[misc]
async def read_booking(
    *,
    db: AsyncSession = Depends(deps.get_db),
    booking_id: int,
    current_user: User = Depends(deps.get_current_active_user),
) -> BookingWithEvent:
    """
    Get one of the caller's bookings by ID.
    """
    booking = await booking_service.get_booking_for_user(
        db, booking_id, current_user.id
    )
    return BookingWithEvent.model_validate(booking)
