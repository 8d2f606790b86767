"""
tests/test_user_store.py -- UserStore persistence, including the single-use
reset and verification token lifecycle.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_settings
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User, UserStatus
from auth.store import UserStore

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(request) -> Generator[UserStore, None, None]:
    s = UserStore(make_settings(f"store_{request.node.name}").database_url)
    yield s
    s.close()


def _user(email: str = "jane@example.com", phone: str = "0712345678", **kwargs) -> User:
    return User(name="Jane Wanjiru", email=email, phone=phone, hashed_password="hash", **kwargs)


def test_create_and_fetch(store: UserStore) -> None:
    uid = store.create_user(_user(email="Jane@Example.COM", role=Role.provider))
    user = store.get_by_id(uid)
    assert user.email == "jane@example.com"
    assert user.role is Role.provider
    assert user.status is UserStatus.active
    assert user.is_verified is False
    assert user.created_at
    assert store.get_by_email("JANE@example.com").id == uid


def test_missing_user_is_none(store: UserStore) -> None:
    assert store.get_by_id(999) is None
    assert store.get_by_email("nobody@example.com") is None


def test_duplicate_email_raises(store: UserStore) -> None:
    store.create_user(_user())
    with pytest.raises(IntegrityError):
        store.create_user(_user(phone="0722222222"))


def test_email_or_phone_taken(store: UserStore) -> None:
    store.create_user(_user())
    assert store.email_or_phone_taken("jane@example.com", "0799999999")
    assert store.email_or_phone_taken("other@example.com", "0712345678")
    assert not store.email_or_phone_taken("other@example.com", "0799999999")


def test_update_user(store: UserStore) -> None:
    uid = store.create_user(_user())
    assert store.update_user(uid, status=UserStatus.suspended, role="ops")
    user = store.get_by_id(uid)
    assert user.status is UserStatus.suspended
    assert user.role is Role.ops
    assert not user.is_active
    assert not store.update_user(999, name="Ghost")


def test_update_user_rejects_token_columns(store: UserStore) -> None:
    uid = store.create_user(_user())
    with pytest.raises(ValueError):
        store.update_user(uid, reset_token_hash="forged")


def test_list_users_filters_by_role(store: UserStore) -> None:
    store.create_user(_user())
    store.create_user(_user(email="p@example.com", phone="0733333333", role=Role.provider))
    assert [u.email for u in store.list_users()] == ["jane@example.com", "p@example.com"]
    assert [u.email for u in store.list_users(Role.provider)] == ["p@example.com"]


class TestResetTokens:
    def test_lookup_before_expiry(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_reset_token(uid, "digest-1", NOW + timedelta(hours=1))
        assert store.get_by_reset_token("digest-1", NOW).id == uid
        assert store.get_by_reset_token("digest-1", NOW + timedelta(minutes=59)).id == uid

    def test_expired_token_not_found(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_reset_token(uid, "digest-1", NOW + timedelta(hours=1))
        assert store.get_by_reset_token("digest-1", NOW + timedelta(hours=1)) is None

    def test_consume_is_single_use(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_reset_token(uid, "digest-1", NOW + timedelta(hours=1))
        assert store.consume_reset_token(uid, "digest-1", "new-hash")
        assert not store.consume_reset_token(uid, "digest-1", "other-hash")

        user = store.get_by_id(uid)
        assert user.hashed_password == "new-hash"
        assert user.reset_token_hash is None
        assert user.reset_token_expires is None
        assert store.get_by_reset_token("digest-1", NOW) is None

    def test_new_token_replaces_old(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_reset_token(uid, "digest-1", NOW + timedelta(hours=1))
        store.set_reset_token(uid, "digest-2", NOW + timedelta(hours=1))
        assert store.get_by_reset_token("digest-1", NOW) is None
        assert not store.consume_reset_token(uid, "digest-1", "new-hash")


class TestVerificationTokens:
    def test_consume_marks_verified_once(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_verification_token(uid, "verify-1", NOW + timedelta(days=1))
        user = store.consume_verification_token("verify-1", NOW)
        assert user.id == uid
        assert user.is_verified
        assert store.consume_verification_token("verify-1", NOW) is None

    def test_expired_verification_token(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.set_verification_token(uid, "verify-1", NOW - timedelta(seconds=1))
        assert store.consume_verification_token("verify-1", NOW) is None
        assert not store.get_by_id(uid).is_verified
