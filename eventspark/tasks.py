import asyncio
import logging
from typing import Any, Coroutine, TypeVar

from . import crud
from .celery_app import celery_app
from .core.config import settings
from .core.database_manager import db_manager
from .core.email import email_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EmailDeliveryError(Exception):
    """SMTP refused a message; the task is retried."""


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Helper to run async functions in sync context."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def _check_delivery(sent: bool, what: str) -> bool:
    if not sent and settings.email.ENABLED:
        raise EmailDeliveryError(f"Failed to send {what}")
    return sent


@celery_app.task(  # type: ignore[misc]
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_booking_confirmation_email(self: Any, user_id: int, booking_id: int) -> bool:
    """
    Send the booking confirmation with its printable ticket.

    Args:
        user_id: ID of the user who paid for the booking
        booking_id: ID of the booking
    """

    async def _send_email() -> bool:
        async with db_manager.get_session() as db:
            booking = await crud.booking.get_booking_with_event(db, booking_id)
            if not booking:
                logger.error(f"Booking {booking_id} not found")
                return False

            user = await crud.user.get(db, user_id)
            if not user:
                logger.error(f"User {user_id} not found")
                return False

            event = booking.event
            booking_data = {
                "id": booking.id,
                "event_name": event.name,
                "event_date": event.date.isoformat(),
                "event_time": event.time.strftime("%H:%M"),
                "venue": event.venue,
                "seat_number": booking.seat_number,
                "ticket_price": f"{booking.ticket_price:.2f}",
                "qr_code": booking.qr_code,
            }

        sent = await email_service.send_booking_confirmation(
            user_email=user.email, user_name=user.name, booking_data=booking_data
        )
        return _check_delivery(sent, f"booking confirmation for booking {booking_id}")

    try:
        return run_async(_send_email())
    except EmailDeliveryError as exc:
        logger.error(f"Task send_booking_confirmation_email failed: {exc}")
        raise self.retry(exc=exc)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_user_invite_email(self: Any, user_id: int, temporary_password: str) -> bool:
    """Send a newly created account its temporary credentials."""

    async def _send_email() -> bool:
        async with db_manager.get_session() as db:
            user = await crud.user.get(db, user_id)
            if not user:
                logger.error(f"User {user_id} not found")
                return False

        sent = await email_service.send_user_invite(
            user_email=user.email,
            user_name=user.name,
            role=user.role.value,
            temporary_password=temporary_password,
        )
        return _check_delivery(sent, f"invite to user {user_id}")

    try:
        return run_async(_send_email())
    except EmailDeliveryError as exc:
        logger.error(f"Task send_user_invite_email failed: {exc}")
        raise self.retry(exc=exc)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_role_change_email(
    self: Any, user_id: int, old_role: str, new_role: str
) -> bool:
    async def _send_email() -> bool:
        async with db_manager.get_session() as db:
            user = await crud.user.get(db, user_id)
            if not user:
                logger.error(f"User {user_id} not found")
                return False

        sent = await email_service.send_role_change(
            user_email=user.email,
            user_name=user.name,
            old_role=old_role,
            new_role=new_role,
        )
        return _check_delivery(sent, f"role change notice to user {user_id}")

    try:
        return run_async(_send_email())
    except EmailDeliveryError as exc:
        logger.error(f"Task send_role_change_email failed: {exc}")
        raise self.retry(exc=exc)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    max_retries=3,
    default_retry_delay=30,
)
def send_otp_email(self: Any, user_id: int, otp: str, purpose: str) -> bool:
    """Deliver a one-time code. Retries are short since the code expires."""

    async def _send_email() -> bool:
        async with db_manager.get_session() as db:
            user = await crud.user.get(db, user_id)
            if not user:
                logger.error(f"User {user_id} not found")
                return False

        sent = await email_service.send_otp(
            user_email=user.email, user_name=user.name, otp=otp, purpose=purpose
        )
        return _check_delivery(sent, f"{purpose} code to user {user_id}")

    try:
        return run_async(_send_email())
    except EmailDeliveryError as exc:
        logger.error(f"Task send_otp_email failed: {exc}")
        raise self.retry(exc=exc)
