"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Bridges FastAPI requests onto the RoleGuard in auth/guard.py:

  require_roles(*roles) -- dependency factory. 401 if the bearer token is
                           missing/invalid, 403 if its role is not listed.
  get_current_identity  -- any authenticated role.

Failures are raised as AuthError subclasses; api/main.py renders them.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.guard import RoleGuard
from auth.models import AuthRequest, Role, SessionPayload


def _auth_request(request: Request) -> AuthRequest:
    return AuthRequest(authorization=request.headers.get("Authorization"))


def _guard(request: Request) -> RoleGuard:
    return RoleGuard(request.app.state.token_service)


def require_roles(*roles: Role) -> Callable[[Request], SessionPayload]:
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/auth/users")
        async def route(identity: SessionPayload = Depends(require_roles(Role.admin, Role.ops))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> SessionPayload:
        return _guard(request).authorize(_auth_request(request), allowed)

    return dependency


get_current_identity = require_roles(*Role)
