"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these types only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    customer = "customer"
    provider = "provider"
    admin = "admin"
    ops = "ops"
    finance = "finance"


class UserStatus(str, Enum):
    active = "active"
    suspended = "suspended"
    banned = "banned"


# Staff roles run the marketplace; everyone else is a customer or provider.
STAFF_ROLES: frozenset[Role] = frozenset({Role.admin, Role.ops, Role.finance})


@dataclass
class User:
    """A marketplace account as stored by UserStore.

    reset_token_hash / verification_token_hash hold HMAC digests of the opaque
    tokens, never the raw values. Both are None when no token is outstanding.
    """

    name: str
    email: str
    phone: str
    role: Role = Role.customer
    id: int | None = None
    hashed_password: str | None = None
    status: UserStatus = UserStatus.active
    is_verified: bool = False
    avatar_url: str | None = None
    location_address: str | None = None
    reset_token_hash: str | None = None
    reset_token_expires: datetime | None = None
    verification_token_hash: str | None = None
    verification_token_expires: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active


@dataclass(frozen=True)
class SessionPayload:
    """Decoded identity carried by a session token.

    role is the role at issuance time. It is not re-checked against the store,
    so a role change only takes effect when the user gets a new token.
    """

    sub: str
    email: str
    role: Role
    iat: datetime
    exp: datetime


@dataclass(frozen=True)
class AuthRequest:
    """The slice of an HTTP request the role guard needs.

    authorization is the raw Authorization header (None when absent).
    identity is attached by the guard once the token checks out.
    """

    authorization: str | None
    identity: SessionPayload | None = None
