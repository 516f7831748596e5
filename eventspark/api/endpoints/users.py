import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark import crud
from eventspark.api import deps
from eventspark.core.errors import (
    ConflictError,
    InvalidStateError,
    UserNotFoundError,
    ValidationError,
)
from eventspark.core.security import generate_temporary_password
from eventspark.models.user import User as UserModel
from eventspark.models.user import UserRole
from eventspark.schemas.user import RoleUpdate, UserCreate, UserInvite
from eventspark.schemas.user import User as UserSchema
from eventspark.services.notifications import Notifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[UserSchema])  # type: ignore[misc]
async def read_users(
    db: AsyncSession = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
    role: Optional[UserRole] = None,
    current_user: UserModel = Depends(deps.get_current_admin_user),
) -> Any:
    """
    Retrieve users, optionally only those holding `role`. Admin only.
    """
    return await crud.user.get_users(db, skip=skip, limit=limit, role_filter=role)


@router.post(
    "/", response_model=UserSchema, status_code=status.HTTP_201_CREATED
)  # type: ignore[misc]
async def invite_user(
    *,
    db: AsyncSession = Depends(deps.get_db),
    user_in: UserInvite,
    current_user: UserModel = Depends(deps.get_current_admin_user),
    notifier: Notifier = Depends(deps.get_notifier),
) -> Any:
    """
    **Create a Staff Account**

    Creates an `organizer` or `admin` account with a random temporary
    password and emails the credentials to the new user.

    **Errors:**
    - `400`: Role other than organizer/admin
    - `409`: Email already registered
    """
    if user_in.role not in (UserRole.ORGANIZER, UserRole.ADMIN):
        raise ValidationError("Only organizer or admin accounts can be invited")
    if await crud.user.get_by_email(db, email=user_in.email):
        raise ConflictError("A user with this email already exists")

    temporary_password = generate_temporary_password()
    user = await crud.user.create(
        db,
        obj_in=UserCreate(
            name=user_in.name,
            email=user_in.email,
            password=temporary_password,
            role=user_in.role,
        ),
    )
    logger.info(f"Admin {current_user.id} invited user {user.id} as {user.role.value}")
    notifier.user_invited(user.id, temporary_password)
    return user


@router.patch("/role", response_model=UserSchema)  # type: ignore[misc]
async def update_user_role(
    *,
    db: AsyncSession = Depends(deps.get_db),
    role_in: RoleUpdate,
    current_user: UserModel = Depends(deps.get_current_admin_user),
    notifier: Notifier = Depends(deps.get_notifier),
) -> Any:
    """
    **Change a User's Role**

    Looks the user up by email and assigns the new role.

    **Errors:**
    - `404`: No user with this email
    - `409`: The user already holds this role
    """
    user = await crud.user.get_by_email(db, email=role_in.email)
    if not user:
        raise UserNotFoundError()
    if user.role == role_in.role:
        raise InvalidStateError(f"User already has role {role_in.role.value}")

    old_role = user.role
    user = await crud.user.update_role(db, db_obj=user, role=role_in.role)
    logger.info(
        f"Admin {current_user.id} changed role of user {user.id} "
        f"from {old_role.value} to {user.role.value}"
    )
    notifier.role_changed(user.id, old_role.value, user.role.value)
    return user
