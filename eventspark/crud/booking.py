import base64
import json
import uuid
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventspark.models.booking import Booking, BookingStatus


def generate_booking_code(event_id: int, user_id: int, seat_number: str) -> str:
    """
    Opaque code printed on the ticket and scanned at the entrance.
    Encoded, not signed: it identifies a booking, it does not prove one.
    """
    payload = {
        "eventId": event_id,
        "userId": user_id,
        "seatNumber": seat_number,
        "nonce": uuid.uuid4().hex,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode()


def decode_booking_code(code: str) -> dict:
    return json.loads(base64.urlsafe_b64decode(code.encode()))


async def get_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(select(Booking).filter(Booking.id == booking_id))
    first: Optional[Booking] = result.scalars().first()
    return first


async def get_booking_with_event(
    db: AsyncSession, booking_id: int
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.event))
        .filter(Booking.id == booking_id)
    )
    first: Optional[Booking] = result.scalars().first()
    return first


async def get_active_seat_numbers(db: AsyncSession, event_id: int) -> set[str]:
    result = await db.execute(
        select(Booking.seat_number).filter(
            Booking.event_id == event_id,
            Booking.status == BookingStatus.ACTIVE,
        )
    )
    return set(result.scalars().all())


async def find_active_seats(
    db: AsyncSession, event_id: int, seat_numbers: Iterable[str]
) -> List[str]:
    """Requested seats that already hold an active booking, in request order."""
    requested = list(seat_numbers)
    result = await db.execute(
        select(Booking.seat_number).filter(
            Booking.event_id == event_id,
            Booking.seat_number.in_(requested),
            Booking.status == BookingStatus.ACTIVE,
        )
    )
    taken = set(result.scalars().all())
    return [seat for seat in requested if seat in taken]


async def add_bookings(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    seat_numbers: Iterable[str],
    ticket_price: Decimal,
) -> List[Booking]:
    """Stage one booking per seat and flush. Does not commit."""
    bookings = [
        Booking(
            event_id=event_id,
            user_id=user_id,
            seat_number=seat_number,
            ticket_price=ticket_price,
            qr_code=generate_booking_code(event_id, user_id, seat_number),
        )
        for seat_number in seat_numbers
    ]
    db.add_all(bookings)
    await db.flush()
    return bookings


async def get_user_bookings(
    db: AsyncSession, user_id: int, skip: int = 0, limit: int = 100
) -> List[Booking]:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.event))
        .filter(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())
