from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark.models.user import OtpPurpose, User, UserRole
from eventspark.schemas.user import UserCreate

from ..core.security import get_password_hash, verify_password


async def get(db: AsyncSession, id: Any) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == id))
    first: Optional[User] = result.scalars().first()
    return first


async def get_by_email(db: AsyncSession, *, email: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.email == email.lower()))
    first: Optional[User] = result.scalars().first()
    return first


async def create(db: AsyncSession, *, obj_in: UserCreate) -> User:
    db_obj = User(
        name=obj_in.name,
        email=obj_in.email.lower(),
        hashed_password=get_password_hash(obj_in.password),
        phone_number=obj_in.phone_number,
        role=obj_in.role,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update_role(db: AsyncSession, *, db_obj: User, role: UserRole) -> User:
    db_obj.role = role
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update(db: AsyncSession, *, db_obj: User, changes: Dict[str, Any]) -> User:
    for field, value in changes.items():
        setattr(db_obj, field, value)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


def set_otp(
    db_obj: User, *, otp_hash: str, purpose: OtpPurpose, expires_at: datetime
) -> None:
    """Replace any outstanding code. Does not commit."""
    db_obj.otp_hash = otp_hash
    db_obj.otp_purpose = purpose
    db_obj.otp_expires_at = expires_at
    db_obj.otp_attempts = 0


def clear_otp(db_obj: User) -> None:
    db_obj.otp_hash = None
    db_obj.otp_purpose = None
    db_obj.otp_expires_at = None
    db_obj.otp_attempts = 0


async def get_users(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 100,
    role_filter: Optional[UserRole] = None,
) -> list[User]:
    query = select(User)

    if role_filter:
        query = query.filter(User.role == role_filter)

    result = await db.execute(query.order_by(User.id).offset(skip).limit(limit))
    return list(result.scalars().all())


async def authenticate(
    db: AsyncSession, *, email: str, password: str
) -> Optional[User]:
    user = await get_by_email(db, email=email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def is_active(user: User) -> bool:
    return bool(user.is_active)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN


def can_manage_events(user: User) -> bool:
    return user.role in (UserRole.ORGANIZER, UserRole.ADMIN)


def owns_or_admin(user: User, owner_id: int) -> bool:
    return user.id == owner_id or is_admin(user)
