import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from eventspark import crud
from eventspark.api import deps
from eventspark.core import security
from eventspark.models.user import OtpPurpose, User, UserRole
from eventspark.schemas.user import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    Message,
    OtpCheck,
    PasswordReset,
    ProfileUpdate,
    Token,
)
from eventspark.schemas.user import User as UserSchema
from eventspark.schemas.user import UserCreate
from eventspark.services import account_service
from eventspark.services.notifications import Notifier

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_token(user: User) -> str:
    return security.create_access_token(
        user.id, additional_claims={"role": user.role.value}
    )


async def _authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await crud.user.authenticate(db, email=email, password=password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    elif not crud.user.is_active(user):
        raise HTTPException(status_code=400, detail="Inactive user")
    return user


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Account",
)  # type: ignore[misc]
async def signup(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
    user_in: UserCreate,
) -> Any:
    """
    **Register a New Account**

    Creates an attendee (`user`) or `organizer` account and signs it in.
    Admin accounts cannot be self-registered.
    A 6-digit verification code is emailed; confirm it with `/verify-email`.

    **Request Body:**
    - `name`, `email`, `password` (min 6 characters)
    - `phone_number` (optional)
    - `role`: `user` (default) or `organizer`

    **Errors:**
    - `400`: Email already registered, or admin role requested
    """
    if user_in.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Cannot self-register as admin")
    if await crud.user.get_by_email(db, email=user_in.email):
        raise HTTPException(
            status_code=400, detail="A user with this email already exists"
        )
    user = await crud.user.create(db, obj_in=user_in)
    logger.info(f"User {user.id} registered as {user.role.value}")
    await account_service.issue_otp(db, user, OtpPurpose.VERIFY_EMAIL, notifier)
    return {
        "access_token": _issue_token(user),
        "token_type": "bearer",
        "user": UserSchema.model_validate(user),
    }


@router.post("/signin", response_model=AuthResponse, summary="Sign In")  # type: ignore[misc]
async def signin(
    *,
    db: AsyncSession = Depends(deps.get_db),
    credentials: LoginRequest,
) -> Any:
    """
    **Sign In with Email and Password**

    JSON counterpart of the OAuth2 form login. Returns the bearer token and
    the signed-in user.

    **Errors:**
    - `400`: Incorrect email/password or inactive user
    """
    user = await _authenticate(db, credentials.email, credentials.password)
    return {
        "access_token": _issue_token(user),
        "token_type": "bearer",
        "user": UserSchema.model_validate(user),
    }


@router.post("/login/access-token", response_model=Token, summary="User Login")  # type: ignore[misc]
async def login_access_token(
    db: AsyncSession = Depends(deps.get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Any:
    """
    **Authenticate User and Get Access Token**

    OAuth2 compatible token login, used by the interactive API docs.

    **Request Body:**
    - `username` (string): User's email address
    - `password` (string): User's password

    **Example Request:**
    ```bash
    curl -X POST "/api/v1/auth/login/access-token" \\
         -H "Content-Type: application/x-www-form-urlencoded" \\
         -d "username=user@example.com&password=securepassword123"
    ```
    """
    user = await _authenticate(db, form_data.username, form_data.password)
    return {"access_token": _issue_token(user), "token_type": "bearer"}


@router.get("/me", response_model=UserSchema, summary="Current User")  # type: ignore[misc]
async def read_user_me(
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return current_user


@router.post("/verify-email", response_model=Message, summary="Verify Email")  # type: ignore[misc]
async def verify_email(
    *,
    db: AsyncSession = Depends(deps.get_db),
    body: OtpCheck,
) -> Any:
    """
    **Confirm the email address with the code sent at signup**

    **Errors:**
    - `400`: No pending code, code expired, wrong code or too many attempts
    - `404`: Unknown email
    """
    await account_service.verify_email(db, body.email, body.otp)
    return {"message": "Email verified successfully"}


@router.post("/forgot-password", response_model=Message, summary="Forgot Password")  # type: ignore[misc]
async def forgot_password(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
    body: EmailRequest,
) -> Any:
    """
    **Email a password reset code**

    Answers the same way whether or not the account exists.
    """
    await account_service.request_password_reset(db, body.email, notifier)
    return {"message": "If an account exists for this email, a reset code has been sent"}


@router.post("/verify-otp", response_model=Message, summary="Check Reset Code")  # type: ignore[misc]
async def verify_otp(
    *,
    db: AsyncSession = Depends(deps.get_db),
    body: OtpCheck,
) -> Any:
    """Check a reset code before asking for the new password. The code stays valid."""
    await account_service.check_reset_code(db, body.email, body.otp)
    return {"message": "OTP is valid"}


@router.post("/reset-password", response_model=Message, summary="Reset Password")  # type: ignore[misc]
async def reset_password(
    *,
    db: AsyncSession = Depends(deps.get_db),
    body: PasswordReset,
) -> Any:
    """
    **Set a new password with a reset code**

    **Request Body:**
    - `email`, `otp` (6 digits), `new_password` (min 6 characters)

    **Errors:**
    - `400`: No pending reset, code expired, wrong code or too many attempts
    - `404`: Unknown email
    """
    await account_service.reset_password(db, body.email, body.otp, body.new_password)
    return {"message": "Password reset successfully"}


@router.get("/profile", response_model=UserSchema, summary="View Profile")  # type: ignore[misc]
async def read_profile(
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return current_user


@router.patch("/profile", response_model=UserSchema, summary="Update Profile")  # type: ignore[misc]
async def update_profile(
    *,
    db: AsyncSession = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    profile_in: ProfileUpdate,
) -> Any:
    """
    **Update name, phone number or password**

    Changing the password needs `current_password` and `new_password`.

    **Errors:**
    - `400`: Current password wrong, or only one of the two passwords given
    """
    return await account_service.update_profile(db, current_user, profile_in)
