"""
api/routes/auth.py -- Sign-up, sign-in and sign-out endpoints.

Routes:
  POST /api/auth/sign-up   -- create account; sets session cookie; 201
  POST /api/auth/sign-in   -- password login; sets session cookie; 200
  POST /api/auth/sign-out  -- clears session cookie; 200

Security:
  sign-up and sign-in are rate-limited per client IP (AUTH_RATE_LIMIT).
  AuthService.authenticate() provides timing equalization -- use it, never inline.
  Both return the same 401 body for an unknown email and a wrong password.
  Cache-Control: no-store on every response that sets a session cookie.
  The token is delivered only in the httpOnly cookie, never in the JSON body.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, MessageResponse, SignInRequest, SignUpRequest, UserPublic
from auth.models import Identity
from auth.service import AuthService
from auth.tokens import TokenService, clear_session_cookie, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("acquisitions.api.auth")

# Auth policy:
# - POST /api/auth/sign-up:   public -- rate-limited
# - POST /api/auth/sign-in:   public -- rate-limited
# - POST /api/auth/sign-out:  public -- clearing a cookie needs no prior auth
router = APIRouter()


def _auth_rate_limit() -> str:
    return get_settings().auth_rate_limit


def _session_response(request: Request, identity: Identity, message: str, status_code: int) -> JSONResponse:
    """Sign a token for identity and return it as a cookie alongside the public user."""
    tokens: TokenService = request.app.state.tokens
    token = tokens.sign(identity)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserPublic.from_identity(identity)).model_dump(mode="json"),
    )
    set_session_cookie(resp, token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_auth_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/sign-up", response_model=AuthResponse, status_code=201)
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Register a new user and start a session.

    409 "Email already exist" when the email is taken, whether the pre-check
    or the store's UNIQUE constraint catches it.
    """
    auth: AuthService = request.app.state.auth
    identity = auth.register(body.name, body.email, body.role, body.password)
    logger.info("User registered successfully: %s", identity.email)
    return _session_response(request, identity, "User registered", 201)


@limiter.limit(_auth_rate_limit)
@router.post("/auth/sign-in", response_model=AuthResponse)
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Authenticate with email and password and start a session."""
    auth: AuthService = request.app.state.auth
    identity = auth.authenticate(body.email, body.password)
    logger.info("User logged in successfully: %s", identity.email)
    return _session_response(request, identity, "User logged in", 200)


@router.post("/auth/sign-out", response_model=MessageResponse)
def sign_out(request: Request) -> JSONResponse:
    """Clear the session cookie.

    The server keeps no session table, so there is nothing to revoke: a copy
    of the token held elsewhere stays valid until it expires.
    """
    resp = JSONResponse(content=MessageResponse(message="User logged out").model_dump())
    clear_session_cookie(resp, request.app.state.settings)
    logger.info("User logged out successfully")
    return resp
