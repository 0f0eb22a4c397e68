"""
auth/errors.py -- Closed error taxonomy for the credential and access-control layer.

Every failure the auth layer can report carries an ErrorKind. The HTTP layer
maps kinds to status codes structurally (api/main.py STATUS_BY_KIND) and never
inspects message text, so rewording a message cannot change a status code.

Client-facing kinds:
  validation           400  input malformed, caught before any store/crypto call
  invalid_credentials  401  sign-in mismatch (unknown email OR wrong password)
  unauthenticated      401  missing / invalid / expired session token
  forbidden            403  authenticated but role or ownership check failed
  not_found            404  target user absent
  duplicate_email      409  uniqueness conflict on create or update

Internal kind:
  internal             500  hashing, configuration or store failure. The
                            response body is always opaque; the cause is logged.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    validation = "validation"
    invalid_credentials = "invalid_credentials"
    duplicate_email = "duplicate_email"
    not_found = "not_found"
    unauthenticated = "unauthenticated"
    forbidden = "forbidden"
    internal = "internal"


class AuthError(Exception):
    """Base class. Subclasses pin `kind` and a default client-facing `error` title.

    `error` is the short title returned as the `error` field of the response
    body; `message` is an optional longer explanation. Internal errors never
    expose either -- the handler substitutes a generic body.
    """

    kind: ErrorKind = ErrorKind.internal
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, error: Optional[str] = None) -> None:
        if error is not None:
            self.error = error
        self.message = message
        super().__init__(message or self.error)


class ValidationError(AuthError):
    kind = ErrorKind.validation
    error = "Validation failed"

    def __init__(self, message: Optional[str] = None, details: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.details = details or []


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.invalid_credentials
    error = "Invalid email or password"


class DuplicateEmailError(AuthError):
    kind = ErrorKind.duplicate_email
    error = "Email already exist"


class NotFoundError(AuthError):
    kind = ErrorKind.not_found
    error = "User not found"


class Unauthenticated(AuthError):
    kind = ErrorKind.unauthenticated
    error = "Authentication required"


class Forbidden(AuthError):
    kind = ErrorKind.forbidden
    error = "Access denied"


class HashingError(AuthError):
    """bcrypt failed internally, or a stored hash is malformed."""


class ConfigurationError(AuthError):
    """A required secret or setting is missing. Raised at startup, not per request."""


class StoreError(AuthError):
    """The credential store failed. Surfaced as 500 unless a flow translates it."""


class ConstraintViolation(StoreError):
    """The store rejected a write on a uniqueness constraint."""


class InvalidTokenError(Exception):
    """A session token failed signature, structure or expiry checks.

    Deliberately not an AuthError: the request gate always translates it to
    Unauthenticated so the reason a token was rejected never reaches the client.
    """
