from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.core.errors import EventNotFoundError, UnauthorizedError, ValidationError
from eventspark.models.booking import Booking
from eventspark.models.user import User, UserRole
from eventspark.schemas.event import EventCreate, EventUpdate
from eventspark.services import booking_service, event_service

from .conftest import event_payload, make_event, make_user

pytestmark = pytest.mark.asyncio


async def test_attendees_only_see_upcoming_events(
    db: AsyncSession, organizer: User, attendee: User
) -> None:
    await make_event(db, organizer, name="Future Gig")
    await make_event(db, organizer, name="Today Gig", date=date.today())
    await make_event(db, organizer, name="Past Gig", date=date.today() - timedelta(days=3))

    events = await event_service.list_events(db, attendee)

    assert [e.name for e in events] == ["Future Gig"]


async def test_organizers_see_only_their_events(
    db: AsyncSession, organizer: User, admin: User
) -> None:
    other = await make_user(db, UserRole.ORGANIZER, email="org2@example.com")
    await make_event(db, organizer, name="Mine", date=date.today() - timedelta(days=1))
    await make_event(db, other, name="Theirs")

    mine = await event_service.list_events(db, organizer)
    everything = await event_service.list_events(db, admin)

    assert [e.name for e in mine] == ["Mine"]
    assert {e.name for e in everything} == {"Mine", "Theirs"}


async def test_filters_and_sorting(
    db: AsyncSession, organizer: User, attendee: User
) -> None:
    soon = date.today() + timedelta(days=2)
    later = date.today() + timedelta(days=9)
    await make_event(db, organizer, name="Late Jazz", date=later, category="music")
    await make_event(
        db, organizer, name="Early Jazz", date=soon, category="music",
        description="Saxophone evening",
    )
    await make_event(db, organizer, name="Chess Open", date=soon, category="games")

    music = await event_service.list_events(db, attendee, category="music")
    assert [e.name for e in music] == ["Early Jazz", "Late Jazz"]

    on_day = await event_service.list_events(db, attendee, on_date=soon)
    assert {e.name for e in on_day} == {"Early Jazz", "Chess Open"}

    searched = await event_service.list_events(db, attendee, search="SAXOPHONE")
    assert [e.name for e in searched] == ["Early Jazz"]


async def test_event_detail_reports_availability_and_price(
    db: AsyncSession, organizer: User
) -> None:
    event = await make_event(
        db,
        organizer,
        total_seats=10,
        dynamic_pricing_enabled=True,
        pricing_rules=[{"threshold": 5, "percentage": 20}],
    )
    await booking_service.sell_tickets(db, event.id, 6, organizer)

    detail = await event_service.get_event_by_id_cached(db, event.id)

    assert detail.available_seats == 4
    assert detail.current_ticket_price == Decimal("60.00")


async def test_missing_event_is_not_found(db: AsyncSession) -> None:
    with pytest.raises(EventNotFoundError):
        await event_service.get_event_by_id_cached(db, 42)


async def test_only_organizers_and_admins_create_events(
    db: AsyncSession, attendee: User, admin: User
) -> None:
    event_in = EventCreate(**event_payload())
    with pytest.raises(UnauthorizedError):
        await event_service.create_event(db, event_in, attendee)

    created = await event_service.create_event(db, event_in, admin)
    assert created.created_by == admin.id
    assert created.sold_tickets == 0
    assert created.revenue == Decimal("0")


async def test_update_requires_owner_or_admin(
    db: AsyncSession, organizer: User, admin: User
) -> None:
    event = await make_event(db, organizer)
    other = await make_user(db, UserRole.ORGANIZER, email="org2@example.com")

    with pytest.raises(UnauthorizedError):
        await event_service.update_event(db, event.id, EventUpdate(venue="Elsewhere"), other)

    updated = await event_service.update_event(
        db, event.id, EventUpdate(venue="Red Hall"), admin
    )
    assert updated.venue == "Red Hall"
    assert updated.name == "Jazz Night"


async def test_update_cannot_shrink_below_sold(
    db: AsyncSession, organizer: User
) -> None:
    event = await make_event(db, organizer, total_seats=10)
    await booking_service.sell_tickets(db, event.id, 6, organizer)

    with pytest.raises(ValidationError):
        await event_service.update_event(db, event.id, EventUpdate(total_seats=5), organizer)

    resized = await event_service.update_event(
        db, event.id, EventUpdate(total_seats=6), organizer
    )
    assert resized.available_seats == 0


async def test_update_of_pricing_rules_changes_current_price(
    db: AsyncSession, organizer: User
) -> None:
    event = await make_event(db, organizer, total_seats=10)
    updated = await event_service.update_event(
        db,
        event.id,
        EventUpdate(
            dynamic_pricing_enabled=True,
            pricing_rules=[{"threshold": 10, "percentage": 50}],
        ),
        organizer,
    )
    assert updated.current_ticket_price == Decimal("75.00")
    assert updated.revenue == Decimal("0")


async def test_delete_removes_event_and_bookings(
    db: AsyncSession, organizer: User, attendee: User
) -> None:
    event = await make_event(db, organizer)
    result = await booking_service.create_booking(db, event.id, "A1", attendee.id)
    booking_id = result.booking.id

    with pytest.raises(UnauthorizedError):
        await event_service.delete_event(db, event.id, attendee)
    await event_service.delete_event(db, event.id, organizer)

    with pytest.raises(EventNotFoundError):
        await event_service.get_event_by_id_cached(db, event.id)
    db.expunge_all()
    assert await db.get(Booking, booking_id) is None


async def test_organizer_listing(db: AsyncSession, organizer: User) -> None:
    await make_event(db, organizer, name="B", date=date.today() + timedelta(days=5))
    await make_event(db, organizer, name="A", date=date.today() + timedelta(days=1))

    events = await event_service.list_organizer_events(db, organizer.id)

    assert [e.name for e in events] == ["A", "B"]
    assert await event_service.list_organizer_events(db, organizer.id + 100) == []
