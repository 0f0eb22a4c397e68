"""
auth/dependencies.py -- The request gate, as FastAPI Depends() helpers.

Two stages, applied in this order on protected routes:

  1. authenticate_token() -- reads the session cookie, verifies it with the
     TokenService on app.state, and attaches the resulting Identity to
     request.state.user. No cookie, or a token that fails verification,
     raises Unauthenticated (401) and the handler never runs.

  2. require_role(*roles) -- returns a dependency that checks the Identity
     already on request.state.user. None attached -> Unauthenticated (401);
     role not in the allow-list -> Forbidden (403).

Use both in a route's dependencies list so FastAPI resolves them in order:

    @router.get("/admin-only", dependencies=[Depends(authenticate_token), Depends(require_role(Role.admin))])

Ownership rules (a user may only touch their own record) are per-route and
live in the handlers, not here.

The identity is taken from the token as-is. There is no store lookup per
request, so a role change or deletion only takes effect when the token expires.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from auth.errors import Forbidden, InvalidTokenError, Unauthenticated
from auth.models import Identity, Role
from auth.tokens import TokenService

logger = logging.getLogger("acquisitions.auth")


def authenticate_token(request: Request) -> Identity:
    """Require a valid session cookie. Attaches and returns the caller's Identity."""
    cookie_name: str = request.app.state.settings.cookie_name
    token = request.cookies.get(cookie_name)
    if not token:
        raise Unauthenticated("No access token provided")

    tokens: TokenService = request.app.state.tokens
    try:
        identity = tokens.verify(token)
    except InvalidTokenError as exc:
        logger.warning("Rejected session token: %s", exc)
        raise Unauthenticated("Invalid or expired token") from exc

    request.state.user = identity
    logger.debug("Authenticated user %s with role %s", identity.email, identity.role.value)
    return identity


def require_role(*allowed_roles: Role | str) -> Callable[[Request], Identity]:
    """Build a dependency that admits only identities whose role is in allowed_roles."""
    allowed = frozenset(Role(r) for r in allowed_roles)

    def role_gate(request: Request) -> Identity:
        identity: Identity | None = getattr(request.state, "user", None)
        if identity is None:
            raise Unauthenticated("User not authenticated")
        if identity.role not in allowed:
            logger.warning("Access denied for %s: role %s not permitted", identity.email, identity.role.value)
            raise Forbidden("Insufficient permissions")
        return identity

    return role_gate
