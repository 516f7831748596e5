from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.user import UserRole


class UserBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone_number: Optional[str] = Field(None, pattern=r"^\+?[\d\s\-()]+$")

    @field_validator("email", mode="after")  # type: ignore[misc]
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.USER


class UserInvite(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    role: UserRole


class RoleUpdate(BaseModel):
    email: EmailStr
    role: UserRole


class User(UserBase):
    id: int
    role: UserRole
    is_active: bool = True
    is_email_verified: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: User


class TokenPayload(BaseModel):
    sub: Optional[int] = None
    role: Optional[str] = None


OTP_PATTERN = r"^\d{6}$"


class EmailRequest(BaseModel):
    email: EmailStr


class OtpCheck(EmailRequest):
    otp: str = Field(..., pattern=OTP_PATTERN, description="6-digit code from the email.")


class PasswordReset(OtpCheck):
    new_password: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    """
    Partial profile change. A password change needs both the current and the
    new password.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone_number: Optional[str] = Field(None, pattern=r"^\+?[\d\s\-()]+$")
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)


class Message(BaseModel):
    success: bool = True
    message: str
