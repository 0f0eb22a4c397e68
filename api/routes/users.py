"""
api/routes/users.py -- User management endpoints behind the request gate.

Routes:
  GET    /api/users/get-users  -- list all users (admin only)
  GET    /api/users/{user_id}  -- one user (self, or any user for admin)
  PUT    /api/users/{user_id}  -- update name/email/role (self, or any user for admin)
  DELETE /api/users/{user_id}  -- delete a user (admin only, never self)

Every route runs authenticate_token first (router-level dependency), so the
handlers can rely on an Identity being present.

Per-route rules layered on top of role checks:
  - A non-admin may read and update only their own record (403 otherwise).
  - A `role` field in a non-admin update is dropped silently, not rejected.
  - An admin cannot delete their own account (403 "Operation denied").

GET /get-users is registered before /{user_id}; the int converter would reject
"get-users" anyway, but registration order keeps the intent explicit.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from api.models import DeletedUserResponse, UserDetail, UserListResponse, UserPublic, UserResponse, UserUpdate
from auth.dependencies import authenticate_token, require_role
from auth.errors import Forbidden
from auth.models import Identity, Role
from auth.service import AuthService

logger = logging.getLogger("acquisitions.api.users")

# Auth policy:
# - GET    /api/users/get-users:  token + admin (require_role)
# - GET    /api/users/{id}:       token + ownership check in handler
# - PUT    /api/users/{id}:       token + ownership check + role strip in handler
# - DELETE /api/users/{id}:       token + admin (require_role) + self-delete check
router = APIRouter(dependencies=[Depends(authenticate_token)])

UserId = Annotated[int, Path(gt=0, description="Positive integer user id")]


@router.get(
    "/get-users",
    response_model=UserListResponse,
    dependencies=[Depends(require_role(Role.admin))],
)
def fetch_all_users(request: Request) -> UserListResponse:
    """List all users. Admin only."""
    logger.info("Getting users...")
    auth: AuthService = request.app.state.auth
    users = auth.list_users()
    return UserListResponse(
        message="Successfully retrieved users",
        users=[UserDetail.from_record(u) for u in users],
        count=len(users),
    )


@router.get("/{user_id}", response_model=UserResponse)
def fetch_user_by_id(
    request: Request,
    user_id: UserId,
    current_user: Identity = Depends(authenticate_token),
) -> UserResponse:
    """Return one user. Non-admins may only read their own record."""
    if not current_user.is_admin and current_user.id != user_id:
        raise Forbidden("You can only view your own information")

    auth: AuthService = request.app.state.auth
    record = auth.get_user(user_id)
    logger.info("User %s retrieved successfully", record.email)
    return UserResponse(message="Successfully retrieved user", user=UserDetail.from_record(record))


@router.put("/{user_id}", response_model=UserResponse)
def update_user_by_id(
    request: Request,
    user_id: UserId,
    body: UserUpdate,
    current_user: Identity = Depends(authenticate_token),
) -> UserResponse:
    """Update a user's profile. Non-admins may only update themselves and never their role."""
    if not current_user.is_admin and current_user.id != user_id:
        raise Forbidden("You can only update your own information")

    changes = body.changes()
    if not current_user.is_admin and changes.pop("role", None) is not None:
        logger.info("Ignoring role change requested by non-admin user %s", current_user.email)

    auth: AuthService = request.app.state.auth
    updated = auth.update_user(user_id, changes)
    return UserResponse(message="Successfully updated user", user=UserDetail.from_record(updated))


@router.delete(
    "/{user_id}",
    response_model=DeletedUserResponse,
    dependencies=[Depends(require_role(Role.admin))],
)
def delete_user_by_id(
    request: Request,
    user_id: UserId,
    current_user: Identity = Depends(authenticate_token),
) -> DeletedUserResponse:
    """Delete a user. Admin only; an admin cannot delete their own account."""
    if current_user.id == user_id:
        raise Forbidden("You cannot delete your own account", error="Operation denied")

    auth: AuthService = request.app.state.auth
    deleted = auth.delete_user(user_id)
    return DeletedUserResponse(message="User deleted successfully", user=UserPublic.from_identity(deleted))
