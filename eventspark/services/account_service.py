"""
Account recovery and self-service: email verification codes, password reset
by one-time code, and profile edits.

A user holds at most one outstanding code. Codes are stored only as a keyed
digest, expire after ``OTP_EXPIRE_MINUTES`` and are burned after
``OTP_MAX_ATTEMPTS`` wrong guesses.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.core import security
from eventspark.core.config import settings
from eventspark.core.errors import UserNotFoundError, ValidationError
from eventspark.crud import user as user_crud
from eventspark.models.user import OtpPurpose, User
from eventspark.schemas.user import ProfileUpdate
from eventspark.services.notifications import Notifier

logger = logging.getLogger(__name__)

_MISSING_REQUEST = {
    OtpPurpose.VERIFY_EMAIL: "No verification request found",
    OtpPurpose.RESET_PASSWORD: "No password reset request found",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


async def issue_otp(
    db: AsyncSession,
    user: User,
    purpose: OtpPurpose,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> str:
    """Store a fresh code for ``user`` and hand it to the notifier."""
    otp = security.generate_otp()
    expires_at = (now or _utcnow()) + timedelta(
        minutes=settings.security.OTP_EXPIRE_MINUTES
    )
    user_crud.set_otp(
        user, otp_hash=security.hash_otp(otp), purpose=purpose, expires_at=expires_at
    )
    await db.commit()
    logger.info(f"Issued {purpose.value} code for user {user.id}")

    try:
        notifier.otp_issued(user.id, otp, purpose.value)
    except Exception as e:
        logger.warning(f"Code dispatch failed for user {user.id}: {e}")
    return otp


async def _get_user(db: AsyncSession, email: str) -> User:
    user = await user_crud.get_by_email(db, email=email)
    if user is None:
        raise UserNotFoundError()
    return user


async def _check_otp(
    db: AsyncSession,
    user: User,
    otp: str,
    purpose: OtpPurpose,
    now: Optional[datetime] = None,
) -> None:
    if user.otp_hash is None or user.otp_purpose != purpose or user.otp_expires_at is None:
        raise ValidationError(_MISSING_REQUEST[purpose])
    if (now or _utcnow()) > _as_utc(user.otp_expires_at):
        raise ValidationError("OTP has expired. Please request a new one")
    if security.verify_otp(otp, user.otp_hash):
        return

    user.otp_attempts += 1
    if user.otp_attempts >= settings.security.OTP_MAX_ATTEMPTS:
        user_crud.clear_otp(user)
        await db.commit()
        logger.warning(f"Code for user {user.id} burned after too many attempts")
        raise ValidationError("Too many attempts. Please request a new code")
    await db.commit()
    raise ValidationError("Invalid OTP")


async def verify_email(
    db: AsyncSession, email: str, otp: str, now: Optional[datetime] = None
) -> User:
    user = await _get_user(db, email)
    await _check_otp(db, user, otp, OtpPurpose.VERIFY_EMAIL, now)
    user_crud.clear_otp(user)
    user.is_email_verified = True
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} verified their email")
    return user


async def request_password_reset(
    db: AsyncSession, email: str, notifier: Notifier
) -> None:
    """Send a reset code. Unknown addresses are ignored so callers cannot enumerate accounts."""
    user = await user_crud.get_by_email(db, email=email)
    if user is None or not user_crud.is_active(user):
        logger.info("Password reset requested for an unknown or inactive account")
        return
    await issue_otp(db, user, OtpPurpose.RESET_PASSWORD, notifier)


async def check_reset_code(
    db: AsyncSession, email: str, otp: str, now: Optional[datetime] = None
) -> None:
    """Validate a reset code without consuming it."""
    user = await _get_user(db, email)
    await _check_otp(db, user, otp, OtpPurpose.RESET_PASSWORD, now)


async def reset_password(
    db: AsyncSession,
    email: str,
    otp: str,
    new_password: str,
    now: Optional[datetime] = None,
) -> User:
    user = await _get_user(db, email)
    await _check_otp(db, user, otp, OtpPurpose.RESET_PASSWORD, now)
    user_crud.clear_otp(user)
    user.hashed_password = security.get_password_hash(new_password)
    # receiving the code proves the address
    user.is_email_verified = True
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} reset their password")
    return user


async def update_profile(db: AsyncSession, user: User, update: ProfileUpdate) -> User:
    data = update.model_dump(exclude_unset=True, exclude_none=True)
    current = data.pop("current_password", None)
    new = data.pop("new_password", None)

    changes: Dict[str, Any] = {
        field: value for field, value in data.items() if getattr(user, field) != value
    }
    if current or new:
        if not (current and new):
            raise ValidationError(
                "Both current and new password are required to change the password"
            )
        if not security.verify_password(current, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        changes["hashed_password"] = security.get_password_hash(new)

    if not changes:
        return user
    user = await user_crud.update(db, db_obj=user, changes=changes)
    logger.info(f"User {user.id} updated profile fields {sorted(changes)}")
    return user
