"""
API request and response models for ServiceHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Kenyan mobile numbers: +2547XXXXXXXX / +2541XXXXXXXX or 07XXXXXXXX / 01XXXXXXXX.
PHONE_PATTERN = re.compile(r"^(\+254|0)[17]\d{8}$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RegisterRoleEnum(str, Enum):
    """Roles a user may pick for themselves. Staff roles are assigned by admins."""

    customer = "customer"
    provider = "provider"


class RoleEnum(str, Enum):
    customer = "customer"
    provider = "provider"
    admin = "admin"
    ops = "ops"
    finance = "finance"


class StatusEnum(str, Enum):
    active = "active"
    suspended = "suspended"
    banned = "banned"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    The phone validator strips spaces before matching, so "0712 345 678"
    is stored as "0712345678". Password strength is checked in the route by
    the password policy, which reports every violated rule at once.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone: str
    password: str = Field(min_length=1, max_length=128)
    role: RegisterRoleEnum = RegisterRoleEnum.customer
    location_address: Optional[str] = Field(default=None, max_length=255)

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, value: str) -> str:
        cleaned = re.sub(r"\s", "", value)
        if not PHONE_PATTERN.match(cleaned):
            raise ValueError("Please enter a valid Kenyan phone number")
        return cleaned


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=128)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/me. Only these fields are user-editable."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=2048)
    location_address: Optional[str] = Field(default=None, max_length=255)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{id}. Admin only."""

    role: Optional[RoleEnum] = None
    status: Optional[StatusEnum] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user record. Never includes hashes or tokens."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    phone: str
    role: str
    status: str
    is_verified: bool
    avatar_url: Optional[str] = None
    location_address: Optional[str] = None
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method -- the mapping lives next to the output model."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            role=user.role.value,
            status=user.status.value,
            is_verified=user.is_verified,
            avatar_url=user.avatar_url,
            location_address=user.location_address,
            created_at=user.created_at or "",
        )


class AuthResponse(BaseModel):
    """Response for register and login: the user plus a fresh session token."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str | list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
