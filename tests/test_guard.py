"""
tests/test_guard.py -- Unit tests for the RoleGuard decorator.

The guard is exercised without FastAPI: handlers are plain functions that
bump a counter, so every rejection path can assert the handler never ran.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_settings

from auth.errors import Forbidden, Unauthenticated
from auth.guard import RoleGuard
from auth.models import STAFF_ROLES, AuthRequest, Role
from auth.tokens import TokenService


class _Counter:
    def __init__(self) -> None:
        self.calls = 0
        self.last_request: AuthRequest | None = None

    def __call__(self, request: AuthRequest, *args, **kwargs) -> str:
        self.calls += 1
        self.last_request = request
        return "handled"


@pytest.fixture
def guard(token_service: TokenService) -> RoleGuard:
    return RoleGuard(token_service)


def _request(token: str) -> AuthRequest:
    return AuthRequest(authorization=f"Bearer {token}")


class TestRejections:
    def test_provider_token_on_admin_route_is_forbidden(self, guard: RoleGuard, token_service: TokenService) -> None:
        counter = _Counter()
        wrapped = guard.guard({Role.admin})(counter)
        token = token_service.issue("7", "peter@example.com", Role.provider)
        with pytest.raises(Forbidden):
            wrapped(_request(token))
        assert counter.calls == 0

    def test_missing_header_is_unauthenticated(self, guard: RoleGuard) -> None:
        counter = _Counter()
        wrapped = guard.guard({Role.customer})(counter)
        with pytest.raises(Unauthenticated):
            wrapped(AuthRequest(authorization=None))
        assert counter.calls == 0

    @pytest.mark.parametrize("header", ["Token abc", "Basic dXNlcjpwYXNz", "Bearer not-a-jwt", ""])
    def test_malformed_header_or_token_is_unauthenticated(self, guard: RoleGuard, header: str) -> None:
        counter = _Counter()
        wrapped = guard.guard(set(Role))(counter)
        with pytest.raises(Unauthenticated):
            wrapped(AuthRequest(authorization=header))
        assert counter.calls == 0

    def test_expired_token_is_unauthenticated(self) -> None:
        issued = datetime(2026, 3, 1, tzinfo=timezone.utc)
        old = TokenService(make_settings("unit", jwt_expire_seconds=60), clock=lambda: issued)
        token = old.issue("1", "a@b.co", Role.admin)
        later = TokenService(make_settings("unit"), clock=lambda: issued + timedelta(minutes=2))

        counter = _Counter()
        wrapped = RoleGuard(later).guard({Role.admin})(counter)
        with pytest.raises(Unauthenticated):
            wrapped(_request(token))
        assert counter.calls == 0

    def test_forbidden_is_not_unauthenticated(self) -> None:
        assert not issubclass(Forbidden, Unauthenticated)
        assert Forbidden().status_code == 403


class TestPassThrough:
    def test_allowed_role_reaches_handler_with_identity(self, guard: RoleGuard, token_service: TokenService) -> None:
        counter = _Counter()
        wrapped = guard.guard(STAFF_ROLES)(counter)
        token = token_service.issue("12", "ops@example.com", Role.ops)

        assert wrapped(_request(token), "extra", flag=True) == "handled"
        assert counter.calls == 1
        identity = counter.last_request.identity
        assert identity.sub == "12"
        assert identity.email == "ops@example.com"
        assert identity.role is Role.ops

    def test_roles_given_as_strings(self, guard: RoleGuard, token_service: TokenService) -> None:
        counter = _Counter()
        wrapped = guard.guard(["provider", "customer"])(counter)
        wrapped(_request(token_service.issue("3", "c@example.com", Role.customer)))
        assert counter.calls == 1

    def test_async_handler(self, guard: RoleGuard, token_service: TokenService) -> None:
        seen: list[AuthRequest] = []

        @guard.guard({Role.finance})
        async def handler(request: AuthRequest) -> int:
            seen.append(request)
            return 42

        token = token_service.issue("9", "f@example.com", Role.finance)
        assert asyncio.run(handler(_request(token))) == 42
        assert seen[0].identity.role is Role.finance

        with pytest.raises(Forbidden):
            asyncio.run(handler(_request(token_service.issue("9", "c@example.com", Role.customer))))
        assert len(seen) == 1

    def test_authorize_returns_identity(self, guard: RoleGuard, token_service: TokenService) -> None:
        token = token_service.issue("5", "p@example.com", Role.provider)
        identity = guard.authorize(_request(token), [Role.provider])
        assert identity.sub == "5"
