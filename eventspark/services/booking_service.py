"""
Seat booking workflow.

Every write runs as one transaction on the caller's session: the event's
capacity counters move through a conditional UPDATE and the booking rows are
guarded by the partial unique index on active seats, so two concurrent
requests can never both hold a seat or push sales past capacity. A failure at
any step rolls everything back.
"""

import logging
from decimal import Decimal
from typing import List, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.core.config import settings
from eventspark.core.errors import (
    BookingContentionError,
    BookingNotFoundError,
    InsufficientSeatsError,
    InvalidStateError,
    PaymentFailedError,
    SeatAlreadyBookedError,
    SoldOutError,
    UnauthorizedError,
)
from eventspark.crud import booking as booking_crud
from eventspark.crud import event as event_crud
from eventspark.crud import user as user_crud
from eventspark.models.booking import Booking, BookingStatus, PaymentStatus
from eventspark.models.event import Event as EventModel
from eventspark.models.user import User
from eventspark.schemas.booking import (
    BookingResult,
    BulkBookingResult,
    SeatAvailability,
    SeatStatus,
)
from eventspark.schemas.booking import Booking as BookingSchema
from eventspark.schemas.event import Event, EventSummary, SellTicketsResult
from eventspark.services.event_service import get_event_or_404, invalidate_event
from eventspark.services.notifications import Notifier
from eventspark.services.payment import PaymentGateway
from eventspark.services.seating import seat_labels, validate_seat_request

logger = logging.getLogger(__name__)


async def list_available_seats(db: AsyncSession, event_id: int) -> SeatAvailability:
    """Every seat label of the event, flagged free unless actively booked."""
    event = await get_event_or_404(db, event_id)
    taken = await booking_crud.get_active_seat_numbers(db, event_id)
    seats = [
        SeatStatus(seat_number=label, is_available=label not in taken)
        for label in seat_labels(event.total_seats)
    ]
    return SeatAvailability(
        event=Event.model_validate(event),
        available_seats=seats,
        total_seats=event.total_seats,
        sold_tickets=event.sold_tickets,
        current_price=event.current_ticket_price,
    )


async def _claim_capacity(
    db: AsyncSession, event: EventModel, quantity: int, bulk: bool
) -> Decimal:
    """
    Move the event's counters for ``quantity`` tickets and return the unit
    price charged. The price is computed from the sold count the update is
    conditioned on; when another sale lands first the event is re-read and
    re-priced. Nothing is written when capacity runs out.
    """
    for _ in range(settings.booking.PRICE_RETRY_ATTEMPTS):
        price = event.current_ticket_price
        if await event_crud.reserve_capacity(
            db, event.id, quantity, price, expected_sold=event.sold_tickets
        ):
            return price
        await db.refresh(event)
        if event.sold_tickets + quantity > event.total_seats:
            if bulk:
                raise InsufficientSeatsError(event.available_seats)
            raise SoldOutError()
    raise BookingContentionError()


async def _reserve_seats(
    db: AsyncSession,
    event: EventModel,
    user_id: int,
    seat_numbers: Sequence[str],
    bulk: bool,
) -> List[Booking]:
    event_id = event.id
    try:
        price = await _claim_capacity(db, event, len(seat_numbers), bulk)
        bookings = await booking_crud.add_bookings(
            db, event_id, user_id, seat_numbers, price
        )
        await db.commit()
    except IntegrityError:
        # Lost a race for a seat since the pre-check; name only the seats now held
        await db.rollback()
        taken = await booking_crud.find_active_seats(db, event_id, seat_numbers)
        await db.refresh(event)
        raise SeatAlreadyBookedError(taken or seat_numbers, bulk=bulk)

    await db.refresh(event)
    for booking in bookings:
        await db.refresh(booking)
    await invalidate_event(event_id)
    return bookings


async def create_booking(
    db: AsyncSession, event_id: int, seat_number: str, user_id: int
) -> BookingResult:
    event = await get_event_or_404(db, event_id)
    validate_seat_request([seat_number], event.total_seats)

    if await booking_crud.find_active_seats(db, event_id, [seat_number]):
        raise SeatAlreadyBookedError([seat_number])
    if event.sold_tickets >= event.total_seats:
        raise SoldOutError()

    bookings = await _reserve_seats(db, event, user_id, [seat_number], bulk=False)
    price = bookings[0].ticket_price
    logger.info(
        f"User {user_id} booked seat {seat_number} for event {event_id} at {price}"
    )
    return BookingResult(
        booking=BookingSchema.model_validate(bookings[0]),
        event=EventSummary.model_validate(event),
    )


async def create_bulk_booking(
    db: AsyncSession, event_id: int, seat_numbers: Sequence[str], user_id: int
) -> BulkBookingResult:
    """
    Book several seats at once, all or nothing. Every seat is priced at the
    price in force before the batch, so a batch never marks itself up.
    """
    event = await get_event_or_404(db, event_id)
    seats = validate_seat_request(seat_numbers, event.total_seats)

    if event.sold_tickets + len(seats) > event.total_seats:
        raise InsufficientSeatsError(event.available_seats)
    already_booked = await booking_crud.find_active_seats(db, event_id, seats)
    if already_booked:
        raise SeatAlreadyBookedError(already_booked, bulk=True)

    bookings = await _reserve_seats(db, event, user_id, seats, bulk=True)
    price = bookings[0].ticket_price
    logger.info(
        f"User {user_id} booked {len(bookings)} seats for event {event_id} at {price} each"
    )
    return BulkBookingResult(
        bookings=[BookingSchema.model_validate(b) for b in bookings],
        event=EventSummary.model_validate(event),
    )


async def settle_payment(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    payment_method: str,
    gateway: PaymentGateway,
    notifier: Notifier,
) -> Booking:
    """
    Charge a pending booking. A declined charge is persisted as ``failed``
    before ``PaymentFailedError`` is raised. The confirmation is dispatched
    after the commit and its failure leaves the payment completed.
    """
    booking = await booking_crud.get_booking(db, booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    if booking.user_id != user_id:
        raise UnauthorizedError()
    if booking.status != BookingStatus.ACTIVE:
        raise InvalidStateError(f"Booking is {booking.status.value}")
    if booking.payment_status != PaymentStatus.PENDING:
        raise InvalidStateError(
            f"Booking payment is already {booking.payment_status.value}"
        )

    outcome = await gateway.charge(booking.id, booking.ticket_price, payment_method)
    if not outcome.success:
        booking.payment_status = PaymentStatus.FAILED
        await db.commit()
        logger.warning(f"Payment failed for booking {booking_id}")
        raise PaymentFailedError(booking_id)

    booking.payment_status = PaymentStatus.COMPLETED
    await db.commit()
    await db.refresh(booking)
    logger.info(f"Payment completed for booking {booking_id} via {payment_method}")

    try:
        notifier.booking_confirmed(user_id, booking.id)
    except Exception as e:
        logger.warning(f"Confirmation dispatch failed for booking {booking_id}: {e}")

    return booking


async def get_user_bookings(
    db: AsyncSession, user_id: int, skip: int = 0, limit: int = 100
) -> List[Booking]:
    return await booking_crud.get_user_bookings(db, user_id, skip=skip, limit=limit)


async def get_booking_for_user(
    db: AsyncSession, booking_id: int, user_id: int
) -> Booking:
    booking = await booking_crud.get_booking_with_event(db, booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    if booking.user_id != user_id:
        raise UnauthorizedError()
    return booking


async def sell_tickets(
    db: AsyncSession, event_id: int, quantity: int, user: User
) -> SellTicketsResult:
    """
    Box-office sale of unassigned tickets by the event's organizer or an
    admin. Priced at the pre-sale price and held to the same capacity check
    as seat bookings.
    """
    event = await get_event_or_404(db, event_id)
    if not user_crud.owns_or_admin(user, event.created_by):
        raise UnauthorizedError()

    price = await _claim_capacity(db, event, quantity, bulk=True)
    await db.commit()
    await db.refresh(event)
    await invalidate_event(event_id)
    logger.info(f"Sold {quantity} tickets for event {event_id} at {price}")

    return SellTicketsResult(
        event=Event.model_validate(event),
        sold_quantity=quantity,
        ticket_price=price,
        total_revenue=event.revenue,
    )
