from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .shared.validators import validate_email, validate_phone

MIN_PASSWORD_LENGTH = 8


class RegisterRequest(BaseModel):
    fullName: str = Field(min_length=1, max_length=100)
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    phone: Optional[str] = None

    @field_validator("fullName")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Full name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return validate_phone(v)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    fullName: str
    role: str
    phone: Optional[str] = None
    isActive: bool
    lastLogin: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            fullName=user.full_name,
            role=user.role,
            phone=user.phone,
            isActive=user.is_active,
            lastLogin=user.last_login,
            createdAt=user.created_at,
        )


class AuthResponse(BaseModel):
    token: str
    user: dict


class MessageResponse(BaseModel):
    message: str
