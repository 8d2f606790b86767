"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Reset and verification tokens are stored as HMAC digests (see
  TokenService.hash_opaque_token). Consuming a token is a single
  UPDATE ... WHERE token_hash = :hash, so two concurrent resets with the
  same token cannot both succeed.

Timestamps are ISO 8601 UTC strings; expiry comparisons happen in Python
after the row is fetched.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import Role, User, UserStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(20), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("role", String(20), nullable=False, server_default=Role.customer.value),
    Column("status", String(20), nullable=False, server_default=UserStatus.active.value),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("avatar_url", Text),
    Column("location_address", Text),
    Column("reset_token_hash", String(64), unique=True),
    Column("reset_token_expires", String(40)),
    Column("verification_token_hash", String(64), unique=True),
    Column("verification_token_expires", String(40)),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

# Fields callers may change through update_user(). Token columns have their
# own methods so a route cannot clear or forge them by accident.
_UPDATABLE_FIELDS = frozenset({"name", "avatar_url", "location_address", "role", "status", "is_verified"})


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///servicehub.db")
        uid = store.create_user(User(name="Jane", email="jane@example.com", phone="0712345678"))
        user = store.get_by_email("jane@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() is not None

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email or phone already
        exists. Routes check email_or_phone_taken() first and still catch
        IntegrityError for the race where two registrations overlap.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email.lower(),
                    phone=user.phone,
                    hashed_password=user.hashed_password,
                    role=Role(user.role).value,
                    status=UserStatus(user.status).value,
                    is_verified=1 if user.is_verified else 0,
                    avatar_url=user.avatar_url,
                    location_address=user.location_address,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email. Emails are stored lowercased."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_or_phone_taken(self, email: str, phone: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(or_(_users.c.email == email.lower(), _users.c.phone == phone))
            ).fetchone()
        return row is not None

    def list_users(self, role: Role | None = None) -> list[User]:
        """Return users ordered by id, optionally filtered by role. Staff-only operation."""
        query = _users.select().order_by(_users.c.id)
        if role is not None:
            query = query.where(_users.c.role == Role(role).value)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable profile/admin fields on an existing user.

        Accepted fields: name, avatar_url, location_address, role, status,
        is_verified. Unknown keys raise ValueError -- fail fast rather than
        silently dropping them.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        if "status" in fields:
            fields["status"] = UserStatus(fields["status"]).value
        if "is_verified" in fields:
            fields["is_verified"] = 1 if fields["is_verified"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Password reset tokens
    # ------------------------------------------------------------------

    def set_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        """Store a reset token digest, replacing any outstanding one."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(reset_token_hash=token_hash, reset_token_expires=_to_iso(expires_at), updated_at=_now_iso())
            )
            conn.commit()

    def get_by_reset_token(self, token_hash: str, now: datetime) -> User | None:
        """Return the user holding this unexpired reset token, else None."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.reset_token_hash == token_hash)).fetchone()
        if row is None:
            return None
        user = _row_to_user(row)
        if user.reset_token_expires is None or user.reset_token_expires <= now:
            return None
        return user

    def consume_reset_token(self, user_id: int, token_hash: str, hashed_password: str) -> bool:
        """Set the new password and clear the reset token in one statement.

        Returns False if the token was already consumed (or replaced) in the
        meantime -- the caller must then treat the token as invalid.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.reset_token_hash == token_hash))
                .values(
                    hashed_password=hashed_password,
                    reset_token_hash=None,
                    reset_token_expires=None,
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Email verification tokens
    # ------------------------------------------------------------------

    def set_verification_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    verification_token_hash=token_hash,
                    verification_token_expires=_to_iso(expires_at),
                    updated_at=_now_iso(),
                )
            )
            conn.commit()

    def consume_verification_token(self, token_hash: str, now: datetime) -> User | None:
        """Mark the holder of an unexpired verification token as verified.

        Returns the updated user, or None if the token is unknown, expired,
        or was consumed by a concurrent request.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.verification_token_hash == token_hash)).fetchone()
        if row is None:
            return None
        user = _row_to_user(row)
        if user.verification_token_expires is None or user.verification_token_expires <= now:
            return None
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user.id) & (_users.c.verification_token_hash == token_hash))
                .values(
                    is_verified=1,
                    verification_token_hash=None,
                    verification_token_expires=None,
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_by_id(user.id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        status=UserStatus(row.status),
        is_verified=bool(row.is_verified),
        avatar_url=row.avatar_url,
        location_address=row.location_address,
        reset_token_hash=row.reset_token_hash,
        reset_token_expires=_from_iso(row.reset_token_expires),
        verification_token_hash=row.verification_token_hash,
        verification_token_expires=_from_iso(row.verification_token_expires),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
