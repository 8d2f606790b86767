"""
auth/guard.py -- Role guard: one parameterized wrapper for every role set.

    guard = RoleGuard(token_service)

    @guard.guard({Role.admin, Role.ops})
    def list_disputes(request: AuthRequest) -> list: ...

The wrapped handler receives an AuthRequest with identity attached. On any
failure the handler is never called:

  no header                       -> Unauthenticated
  bad prefix / bad or expired JWT -> Unauthenticated
  role not in allowed_roles       -> Forbidden

Checks are synchronous and single-pass. The guard touches no store; the role
it enforces is the one baked into the token at issuance.
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from auth.errors import Forbidden, InvalidHeader, InvalidToken, Unauthenticated
from auth.models import AuthRequest, Role, SessionPayload
from auth.tokens import TokenService, extract_bearer

logger = logging.getLogger("servicehub.auth.guard")


class RoleGuard:
    def __init__(self, token_service: TokenService) -> None:
        self._tokens = token_service

    def authorize(self, request: AuthRequest, allowed_roles: Iterable[Role | str]) -> SessionPayload:
        """Return the decoded identity or raise Unauthenticated / Forbidden."""
        allowed = frozenset(Role(r) for r in allowed_roles)
        if request.authorization is None:
            raise Unauthenticated("Authorization header is required.")
        try:
            token = extract_bearer(request.authorization)
            identity = self._tokens.verify(token)
        except (InvalidHeader, InvalidToken) as exc:
            raise Unauthenticated(exc.message) from None
        if identity.role not in allowed:
            logger.info("Forbidden: sub=%s role=%s", identity.sub, identity.role.value)
            raise Forbidden()
        return identity

    def guard(self, allowed_roles: Iterable[Role | str]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Return a decorator that only lets allowed_roles reach the handler.

        The handler's first positional argument must be the AuthRequest.
        Coroutine functions stay coroutine functions.
        """
        allowed = frozenset(Role(r) for r in allowed_roles)

        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            if inspect.iscoroutinefunction(handler):

                @functools.wraps(handler)
                async def async_wrapper(request: AuthRequest, *args: Any, **kwargs: Any) -> Any:
                    identity = self.authorize(request, allowed)
                    return await handler(replace(request, identity=identity), *args, **kwargs)

                return async_wrapper

            @functools.wraps(handler)
            def wrapper(request: AuthRequest, *args: Any, **kwargs: Any) -> Any:
                identity = self.authorize(request, allowed)
                return handler(replace(request, identity=identity), *args, **kwargs)

            return wrapper

        return decorator
