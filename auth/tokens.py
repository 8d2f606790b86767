"""
auth/tokens.py -- Session tokens, opaque tokens, and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with Settings.jwt_secret and
       carry sub, email, role, iat and exp. verify() raises InvalidToken on any
       failure with one uniform message -- the caller cannot tell a tampered
       token from an expired or malformed one. The route layer turns that
       into a 401.

       Expiry is checked against the injected clock rather than by jose, so
       tests can move time without patching the library.

  Opaque tokens: secrets.token_hex(32) gives 256 bits of entropy. They are
       single-use capabilities for password reset and email verification.
       Only HMAC-SHA256(jwt_secret, raw) is persisted, so a database dump
       does not hand out live reset links. The hash is deterministic, which
       keeps lookup O(1).

  Passwords: bcrypt with cost 12. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered [C1].

There is no revocation list. A token's role is the role at issuance; handlers
that need the current status re-read the user record.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import InvalidHeader, InvalidToken
from auth.models import Role, SessionPayload

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("servicehub.auth")

_ALGORITHM = "HS256"
_BEARER_PREFIX = "Bearer "


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


# bcrypt only reads the first 72 bytes; newer releases raise instead of
# truncating, so cut explicitly on both sides.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    The policy check runs on the full string; only the first 72 bytes are
    hashed. The API layer caps passwords at 128 characters.
    """
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the store.
        return False


# Timing equalization dummy hash [C1].
_DUMMY_HASH: str = hash_password("servicehub_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the email is registered. Returns the
    User when the password matches, None otherwise. Account status is NOT
    checked here: the login route reports suspended/banned accounts with a
    distinct 403, and only after the password has been proven.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Opaque tokens
# ---------------------------------------------------------------------------


def issue_opaque_token() -> str:
    """Return 32 random bytes as 64 hex characters from the OS CSPRNG."""
    return secrets.token_hex(32)


def extract_bearer(header: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Raises InvalidHeader unless the value starts with the literal "Bearer "
    prefix and has something after it.
    """
    if not header or not header.startswith(_BEARER_PREFIX):
        raise InvalidHeader()
    token = header[len(_BEARER_PREFIX) :]
    if not token:
        raise InvalidHeader()
    return token


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def _is_canonical(token: str) -> bool:
    """True when the token has three segments that re-encode to themselves.

    A base64url segment whose length is not a multiple of four has spare low
    bits in its last character that decoders ignore; a flip there would
    otherwise leave the signature intact.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return False
    for segment in segments:
        raw = segment.encode("ascii")
        if base64url_encode(base64url_decode(raw)) != raw:
            return False
    return True


class TokenService:
    """Issues and verifies signed session tokens.

    Usage:
        tokens = TokenService(get_settings())
        token = tokens.issue("42", "jane@example.com", Role.customer)
        identity = tokens.verify(token)
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self._secret = settings.jwt_secret
        self._ttl = timedelta(seconds=settings.jwt_expire_seconds)
        self._clock = clock

    def issue(self, subject: str, email: str, role: Role | str) -> str:
        """Encode a signed JWT for the given identity.

        iat is truncated to whole seconds so the decoded payload compares
        equal to what was issued.
        """
        role = Role(role)
        issued_at = self._clock().replace(microsecond=0)
        payload = {
            "sub": str(subject),
            "email": email,
            "role": role.value,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionPayload:
        """Decode and verify a JWT. Raises InvalidToken on any failure.

        Only jose's signature check is used; claim presence and expiry are
        checked here against the injected clock. Segments must be canonical
        base64url so that every character of the signature is significant.
        """
        try:
            if not _is_canonical(token):
                raise JWTError("non-canonical segment")
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
            payload = SessionPayload(
                sub=claims["sub"],
                email=claims["email"],
                role=Role(claims["role"]),
                iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Session token rejected (%s)", type(exc).__name__)
            raise InvalidToken() from None

        if self._clock() >= payload.exp:
            logger.debug("Session token rejected (expired) for sub=%s", payload.sub)
            raise InvalidToken()
        return payload

    def hash_opaque_token(self, raw_token: str) -> str:
        """Return HMAC-SHA256(jwt_secret, raw_token) as a hex string.

        Used to store and look up reset / verification tokens without keeping
        the raw capability in the database.
        """
        return hmac.new(self._secret.encode(), raw_token.encode(), hashlib.sha256).hexdigest()
