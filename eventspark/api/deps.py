from typing import Any, AsyncGenerator, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose.exceptions import JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark import crud
from eventspark.core import security
from eventspark.core.config import settings
from eventspark.core.database_manager import db_manager
from eventspark.models.user import User, UserRole
from eventspark.schemas.user import TokenPayload
from eventspark.services.notifications import Notifier, notifier
from eventspark.services.payment import PaymentGateway, SimulatedPaymentGateway

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login/access-token"
)

_payment_gateway = SimulatedPaymentGateway()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with db_manager.get_session() as session:
        yield session


async def get_current_user(
    db: AsyncSession = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> User:
    try:
        payload = security.decode_access_token(token)
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = await crud.user.get(db, id=token_data.sub)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if not crud.user.is_active(current_user):
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_roles(required_roles: List[UserRole]) -> Any:
    """Dependency factory for multiple role access"""

    def roles_dependency(
        current_user: User = Depends(get_current_active_user),
    ) -> User:
        if current_user.role not in required_roles:
            roles_str = ", ".join([role.value for role in required_roles])
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"One of these roles required: {roles_str}",
            )
        return current_user

    return roles_dependency


get_current_admin_user = require_roles([UserRole.ADMIN])


def get_payment_gateway() -> PaymentGateway:
    return _payment_gateway


def get_notifier() -> Notifier:
    return notifier
