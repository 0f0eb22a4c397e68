"""
api/main.py -- FastAPI application entry point for the Acquisitions API.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost -- the last one registered wraps the rest):
  1. log_requests        -- one access-log line per request
  2. security_headers    -- nosniff / frame-deny / referrer policy on every response
  3. SlowAPIMiddleware   -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware      -- adds CORS headers for allowed browser origins

Lifespan builds the long-lived collaborators once from Settings and parks them
on app.state: the credential store, the password hasher, the token service and
the AuthService that ties them together. Nothing re-reads configuration per
request; the request gate and the routes read these objects from app.state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, FieldError, HealthResponse, MessageResponse, field_errors
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.errors import AuthError, ErrorKind, ValidationError
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("acquisitions.api")
access_logger = logging.getLogger("acquisitions.access")

_STARTED_AT = time.monotonic()

# Structural mapping from error kind to HTTP status. Handlers never look at
# message text to pick a status.
STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.invalid_credentials: 401,
    ErrorKind.unauthenticated: 401,
    ErrorKind.forbidden: 403,
    ErrorKind.not_found: 404,
    ErrorKind.duplicate_email: 409,
    ErrorKind.internal: 500,
}

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth collaborators on startup; close the store on shutdown.

    TokenService raises ConfigurationError here if no signing secret is
    configured, so a broken deployment fails before serving any request.
    """
    logger.info("Acquisitions API starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    app.state.auth = AuthService(app.state.user_store, PasswordHasher())
    logger.info("Auth initialized (token ttl=%ds)", settings.token_expire_seconds)

    yield

    app.state.user_store.close()
    logger.info("Acquisitions API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Acquisitions API",
    description="User accounts, cookie sessions and role-based access control.",
    version="1.0.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    # The session travels in a cookie, so browsers must be allowed to send it.
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# The slowapi middleware and decorators find the limiter on app.state.
app.state.limiter = limiter


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log: client, method, path, status and elapsed time."""
    began = time.perf_counter()
    response = await call_next(request)
    client = request.client.host if request.client else "-"
    elapsed_ms = (time.perf_counter() - began) * 1000
    access_logger.info(
        '%s "%s %s" %d %.1fms', client, request.method, request.url.path, response.status_code, elapsed_ms
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    logger.info("Hello from Acquisitions!")
    return "Hello from Acquisitions!"


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness, the current time and process uptime in seconds."""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - _STARTED_AT, 3),
    )


@app.get("/api", tags=["Health"])
async def api_root() -> MessageResponse:
    return MessageResponse(message="Aquisitions API is running!")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope ({error, message?,
# details?}) so clients can parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, message: str | None = None, details: list[FieldError] | None = None):
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map a typed auth error to its status by kind.

    Internal kinds (hashing, configuration, store) get an opaque body; the
    cause is logged here and never sent to the client.
    """
    status_code = STATUS_BY_KIND[exc.kind]
    if exc.kind is ErrorKind.internal:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc.__cause__,
        )
        return _error(500, "Internal server error")
    if isinstance(exc, ValidationError):
        return _error(status_code, exc.error, exc.message, [FieldError(**d) for d in exc.details])
    return _error(status_code, exc.error, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a field -> message list when the request fails validation."""
    return _error(400, "Validation failed", details=field_errors(exc.errors(), drop_location=True))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded.

    Retry-After is the window length of the limit that tripped, so "10/minute"
    sends 60 and "100/hour" sends 3600. The window may reset sooner.
    """
    retry_after = exc.limit.limit.get_expiry()
    response = _error(429, "Too many requests", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured body for framework-raised HTTP errors (unknown route, bad method)."""
    if exc.status_code == 404:
        return _error(404, "Route not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything no other handler claimed. Logged with traceback, body stays opaque."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")
