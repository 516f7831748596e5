from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from eventspark.core.db_utils import db_transaction
from eventspark.models.event import Event
from eventspark.schemas.event import EventCreate, EventUpdate


async def get_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    result = await db.execute(select(Event).filter(Event.id == event_id))
    first: Optional[Event] = result.scalars().first()
    return first


async def get_events_filtered(
    db: AsyncSession,
    scope: Optional[ColumnElement[bool]] = None,
    category: Optional[str] = None,
    on_date: Optional[date] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Event]:
    """Get events with optional filtering, soonest first"""
    query = select(Event)

    filters: list[ColumnElement[bool]] = []
    if scope is not None:
        filters.append(scope)
    if category:
        filters.append(Event.category == category)
    if on_date is not None:
        filters.append(Event.date == on_date)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(Event.name.ilike(pattern), Event.description.ilike(pattern))
        )

    if filters:
        query = query.filter(and_(*filters))

    query = query.order_by(Event.date, Event.time).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_events_by_organizer(db: AsyncSession, organizer_id: int) -> list[Event]:
    result = await db.execute(
        select(Event)
        .filter(Event.created_by == organizer_id)
        .order_by(Event.date, Event.time)
    )
    return list(result.scalars().all())


async def create_event(
    db: AsyncSession, event: EventCreate, organizer_id: int
) -> Event:
    db_event = Event(
        **event.model_dump(exclude={"pricing_rules"}),
        pricing_rules=[rule.model_dump() for rule in event.pricing_rules],
        created_by=organizer_id,
        sold_tickets=0,
        revenue=Decimal("0"),
    )
    async with db_transaction(db):
        db.add(db_event)
    await db.refresh(db_event)
    return db_event


async def update_event(db: AsyncSession, db_event: Event, event: EventUpdate) -> Event:
    update_data = event.model_dump(exclude_unset=True)
    if "pricing_rules" in update_data and update_data["pricing_rules"] is not None:
        update_data["pricing_rules"] = [
            rule.model_dump() for rule in event.pricing_rules or []
        ]
    async with db_transaction(db):
        for key, value in update_data.items():
            setattr(db_event, key, value)
    await db.refresh(db_event)
    return db_event


async def delete_event(db: AsyncSession, db_event: Event) -> None:
    async with db_transaction(db):
        await db.delete(db_event)


async def reserve_capacity(
    db: AsyncSession,
    event_id: int,
    quantity: int,
    unit_price: Decimal,
    expected_sold: Optional[int] = None,
) -> bool:
    """
    Atomically add ``quantity`` sold tickets and their revenue, only if the
    event still has room. With ``expected_sold`` the update also requires the
    sold count the caller priced against, so a sale never lands at a price
    computed from a stale count. Returns False on a miss. Does not commit.
    """
    conditions = [
        Event.id == event_id,
        Event.sold_tickets + quantity <= Event.total_seats,
    ]
    if expected_sold is not None:
        conditions.append(Event.sold_tickets == expected_sold)
    result = await db.execute(
        update(Event)
        .where(*conditions)
        .values(
            sold_tickets=Event.sold_tickets + quantity,
            revenue=Event.revenue + unit_price * quantity,
        )
        .execution_options(synchronize_session=False)
    )
    return bool(getattr(result, "rowcount", 0))
