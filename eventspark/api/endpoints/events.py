from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.api import deps
from eventspark.models.user import User, UserRole
from eventspark.schemas.event import Event as EventSchema
from eventspark.schemas.event import (
    EventCreate,
    EventUpdate,
    SellTicketsRequest,
    SellTicketsResult,
)
from eventspark.services import booking_service, event_service

router = APIRouter()

require_event_manager = deps.require_roles([UserRole.ORGANIZER, UserRole.ADMIN])


@router.post(
    "/",
    response_model=EventSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Create New Event",
)  # type: ignore[misc]
async def create_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_in: EventCreate,
    current_user: User = Depends(require_event_manager),
) -> EventSchema:
    """
    **Create New Event** (Organizer/Admin)

    **Request Body:**
    - `name`, `description`, `venue`, `category` (strings)
    - `date` (YYYY-MM-DD) and `time` (HH:MM)
    - `total_seats` (integer): Capacity, laid out in rows of ten (A1..A10, B1..)
    - `ticket_price` (decimal): Base price
    - `dynamic_pricing_enabled` (bool) and `pricing_rules`: ordered markups
      applied while remaining seats are at or below each `threshold`

    **Example Request:**
    ```json
    {
        "name": "Jazz Night",
        "description": "Live quartet",
        "date": "2030-06-15",
        "time": "20:00",
        "venue": "Blue Hall",
        "category": "music",
        "total_seats": 100,
        "ticket_price": "50.00",
        "dynamic_pricing_enabled": true,
        "pricing_rules": [{"threshold": 10, "percentage": 10}]
    }
    ```

    **Errors:**
    - `403`: Caller is not an organizer or admin
    - `422`: Invalid event data
    """
    return await event_service.create_event(db, event_in, current_user)


@router.get("/", response_model=List[EventSchema], summary="List Events with Filters")  # type: ignore[misc]
async def read_events(
    db: AsyncSession = Depends(deps.get_db),
    skip: int = 0,
    limit: int = Query(100, le=100),
    category: Optional[str] = Query(None, description="Filter by category"),
    on_date: Optional[date] = Query(None, alias="date", description="Events on this day"),
    search: Optional[str] = Query(None, description="Match name or description"),
    current_user: User = Depends(deps.get_current_active_user),
) -> List[EventSchema]:
    """
    **Retrieve Events**

    What is listed depends on the caller: admins see every event, organizers
    their own events, attendees upcoming events only. Sorted by date and time.

    **Example Requests:**
    ```bash
    GET /api/v1/events/?category=music
    GET /api/v1/events/?date=2030-06-15&search=jazz
    ```

    **Caching:**
    Results are cached under versioned keys; any event or booking write
    invalidates every cached list.
    """
    return await event_service.list_events(
        db,
        current_user,
        category=category,
        on_date=on_date,
        search=search,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/organizer/{organizer_id}",
    response_model=List[EventSchema],
    summary="List Organizer Events",
)  # type: ignore[misc]
async def read_organizer_events(
    *,
    db: AsyncSession = Depends(deps.get_db),
    organizer_id: int,
) -> List[EventSchema]:
    """Public list of the events created by one organizer."""
    return await event_service.list_organizer_events(db, organizer_id)


@router.get("/{event_id}", response_model=EventSchema, summary="Get Event Details")  # type: ignore[misc]
async def read_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(deps.get_current_active_user),
) -> EventSchema:
    """
    **Get Event by ID**

    Includes `available_seats` and the `current_ticket_price` after dynamic
    pricing.

    **Errors:**
    - `404`: Event not found
    """
    return await event_service.get_event_by_id_cached(db, event_id)


@router.put("/{event_id}", response_model=EventSchema, summary="Update Event")  # type: ignore[misc]
async def update_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    event_in: EventUpdate,
    current_user: User = Depends(require_event_manager),
) -> EventSchema:
    """
    **Update Event** (Owner/Admin)

    Partial update; omitted fields are left unchanged.

    **Errors:**
    - `400`: `total_seats` lower than tickets already sold
    - `403`: Caller does not own the event
    - `404`: Event not found
    """
    return await event_service.update_event(db, event_id, event_in, current_user)


@router.delete(
    "/{event_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Event"
)  # type: ignore[misc]
async def delete_event(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    current_user: User = Depends(require_event_manager),
) -> Response:
    """Delete an event and its bookings (Owner/Admin)."""
    await event_service.delete_event(db, event_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{event_id}/sell-tickets",
    response_model=SellTicketsResult,
    summary="Sell Unassigned Tickets",
)  # type: ignore[misc]
async def sell_tickets(
    *,
    db: AsyncSession = Depends(deps.get_db),
    event_id: int,
    sale_in: SellTicketsRequest,
    current_user: User = Depends(require_event_manager),
) -> SellTicketsResult:
    """
    **Box-Office Sale** (Owner/Admin)

    Records `quantity` tickets sold without seat assignment, priced at the
    current ticket price.

    **Errors:**
    - `403`: Caller does not own the event
    - `404`: Event not found
    - `409`: Not enough seats available
    """
    return await booking_service.sell_tickets(
        db, event_id, sale_in.quantity, current_user
    )
