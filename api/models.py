"""
API request and response models for the Acquisitions REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation happens here, before any store or crypto call: a malformed body
never reaches AuthService. Failures are rendered as 400 "Validation failed"
with a details list by the RequestValidationError handler in api/main.py.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from auth.models import Identity, Role, UserRecord
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

# Name and email are trimmed; passwords are taken byte-for-byte.
_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]
_Email = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255, pattern=EMAIL_PATTERN)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/auth/sign-up."""

    name: _Name
    email: _Email
    password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    role: Role = Role.user

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        # Counted in UTF-8 bytes, not characters.
        if password_too_long(value):
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class SignInRequest(BaseModel):
    """Request body for POST /api/auth/sign-in."""

    email: _Email
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)


class UserUpdate(BaseModel):
    """Request body for PUT /api/users/{id}. At least one field is required.

    `role` is accepted from anyone at this layer; the route strips it for
    non-admin callers rather than rejecting the request.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[_Name] = None
    email: Optional[_Email] = None
    role: Optional[Role] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "UserUpdate":
        if not self.model_fields_set & {"name", "email", "role"}:
            raise ValueError("At least one field must be provided for update")
        return self

    def changes(self) -> dict:
        """Only the fields the client actually sent, minus explicit nulls."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Public identity fields. Never carries a password or hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: Role

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserPublic":
        return cls(id=identity.id, name=identity.name, email=identity.email, role=identity.role)


class UserDetail(UserPublic):
    """Public fields plus timestamps, for the user-management routes."""

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserDetail":
        return cls(
            id=record.id,
            name=record.name,
            email=record.email,
            role=record.role,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class AuthResponse(BaseModel):
    """Response for sign-up / sign-in. The token travels in the cookie, not here."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserPublic


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserDetail


class DeletedUserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserPublic


class UserListResponse(BaseModel):
    """Response for GET /api/users/get-users."""

    model_config = ConfigDict(frozen=True)

    message: str
    users: list[UserDetail]
    count: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    `details` is present only for validation failures. Serialize with
    exclude_none=True so absent fields are omitted rather than null.
    """

    model_config = ConfigDict(frozen=True)

    error: str
    message: Optional[str] = None
    details: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    uptime: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def field_errors(errors: list[dict], *, drop_location: bool = False) -> list[FieldError]:
    """Turn pydantic error dicts into field -> message pairs.

    With drop_location=True the leading "body" / "path" part of each loc is
    removed, as FastAPI prefixes request errors with where the value came from.
    """
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if drop_location:
            loc = loc[1:] or loc
        details.append(FieldError(field=".".join(loc) or "request", message=err.get("msg", "Invalid value")))
    return details
