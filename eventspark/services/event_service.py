import hashlib
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from eventspark.core.config import settings
from eventspark.core.errors import (
    EventNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from eventspark.crud import event as event_crud
from eventspark.crud import user as user_crud
from eventspark.models.event import Event as EventModel
from eventspark.models.user import User, UserRole
from eventspark.schemas.event import (
    Event,
    EventCreate,
    EventUpdate,
)
from eventspark.utils.cache import bump_version, cache_get, get_version, invalidate_cache

logger = logging.getLogger(__name__)

EVENTS_LIST_VERSION_KEY = "events_list_version"


def visibility_scope(
    user: User, today: Optional[date] = None
) -> Optional[ColumnElement[bool]]:
    """
    Which events a caller may list: admins see everything, organizers their
    own events, everyone else only events dated after today.
    """
    if user.role == UserRole.ADMIN:
        return None
    if user.role == UserRole.ORGANIZER:
        return EventModel.created_by == user.id
    return EventModel.date > (today or date.today())


def _scope_key(user: User, today: date) -> Dict[str, Any]:
    if user.role == UserRole.ADMIN:
        return {"scope": "all"}
    if user.role == UserRole.ORGANIZER:
        return {"scope": "organizer", "organizer_id": user.id}
    return {"scope": "upcoming", "after": today.isoformat()}


async def invalidate_event(event_id: int) -> None:
    """Drop the cached event and every cached event list."""
    await invalidate_cache(f"event:{event_id}")
    await bump_version(EVENTS_LIST_VERSION_KEY)


async def get_event_or_404(db: AsyncSession, event_id: int) -> EventModel:
    db_event = await event_crud.get_event(db, event_id)
    if db_event is None:
        raise EventNotFoundError(event_id)
    return db_event


async def get_event_by_id_cached(db: AsyncSession, event_id: int) -> Event:
    """
    Reads an event from the cache if available, otherwise from the database.
    """

    async def db_loader() -> Optional[Event]:
        event_obj = await event_crud.get_event(db, event_id)
        if event_obj:
            return Event.model_validate(event_obj)
        return None

    event = await cache_get(
        key=f"event:{event_id}",
        ttl=settings.cache.TTL,
        db_loader=db_loader,
        serializer=lambda pyd: pyd.model_dump_json(),
        deserializer=lambda s: Event.model_validate_json(s),
    )
    if event is None:
        raise EventNotFoundError(event_id)
    return event


async def list_events(
    db: AsyncSession,
    user: User,
    category: Optional[str] = None,
    on_date: Optional[date] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Event]:
    """
    Lists the events a caller may see. Caching is versioned so any event write
    invalidates every list at once.
    """
    today = date.today()
    filters: Dict[str, Any] = {
        **_scope_key(user, today),
        "category": category,
        "date": on_date.isoformat() if on_date else None,
        "search": search,
        "skip": skip,
        "limit": limit,
    }
    version = await get_version(EVENTS_LIST_VERSION_KEY)
    filters_hash = hashlib.sha256(
        json.dumps(filters, sort_keys=True).encode()
    ).hexdigest()

    async def db_loader() -> List[Event]:
        events = await event_crud.get_events_filtered(
            db,
            scope=visibility_scope(user, today),
            category=category,
            on_date=on_date,
            search=search,
            skip=skip,
            limit=limit,
        )
        return [Event.model_validate(e) for e in events]

    def list_serializer(events: List[Event]) -> str:
        return json.dumps([event.model_dump(mode="json") for event in events])

    def list_deserializer(data: str) -> List[Event]:
        return [Event.model_validate(item) for item in json.loads(data)]

    return await cache_get(
        key=f"events_list:v{version}:{filters_hash}",
        ttl=settings.cache.TTL,
        db_loader=db_loader,
        serializer=list_serializer,
        deserializer=list_deserializer,
    )


async def list_organizer_events(db: AsyncSession, organizer_id: int) -> List[Event]:
    events = await event_crud.get_events_by_organizer(db, organizer_id)
    return [Event.model_validate(e) for e in events]


async def create_event(db: AsyncSession, event_in: EventCreate, user: User) -> Event:
    if not user_crud.can_manage_events(user):
        raise UnauthorizedError("Only organizers and admins can create events")
    event_obj = await event_crud.create_event(db, event=event_in, organizer_id=user.id)
    await bump_version(EVENTS_LIST_VERSION_KEY)
    logger.info(f"Event {event_obj.id} created by user {user.id}")
    return Event.model_validate(event_obj)


async def update_event(
    db: AsyncSession, event_id: int, event_in: EventUpdate, user: User
) -> Event:
    db_event = await get_event_or_404(db, event_id)
    if not user_crud.owns_or_admin(user, db_event.created_by):
        raise UnauthorizedError("Forbidden")
    if event_in.total_seats is not None and event_in.total_seats < db_event.sold_tickets:
        raise ValidationError(
            f"Total seats cannot be lower than the {db_event.sold_tickets} tickets already sold"
        )
    updated = await event_crud.update_event(db, db_event, event_in)
    await invalidate_event(event_id)
    return Event.model_validate(updated)


async def delete_event(db: AsyncSession, event_id: int, user: User) -> None:
    db_event = await get_event_or_404(db, event_id)
    if not user_crud.owns_or_admin(user, db_event.created_by):
        raise UnauthorizedError("Forbidden")
    await event_crud.delete_event(db, db_event)
    await invalidate_event(event_id)
    logger.info(f"Event {event_id} deleted by user {user.id}")
