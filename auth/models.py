"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no I/O). Stores and routes do the
work; these types only own domain shape.

Identity is what a session token carries and what the request gate attaches
to request.state.user. UserRecord is what the credential store owns. The two
are deliberately separate types so a password hash can never end up inside a
token or a response body by accident.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass(frozen=True)
class Identity:
    """The public identity claim. Embedded in every session token."""

    id: int
    name: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    def to_claims(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role.value}

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Identity:
        """Rebuild an Identity from decoded token claims.

        Raises KeyError, TypeError or ValueError when a claim is missing or of
        the wrong shape -- the token service treats all of those as a bad token.
        """
        user_id = claims["id"]
        if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id < 1:
            raise ValueError("id claim must be a positive integer")
        name, email = claims["name"], claims["email"]
        if not isinstance(name, str) or not isinstance(email, str):
            raise TypeError("name and email claims must be strings")
        return cls(id=user_id, name=name, email=email, role=Role(claims["role"]))


@dataclass
class UserRecord:
    """A stored user. Owned by the credential store; never serialized whole."""

    name: str
    email: str
    role: Role
    password_hash: str
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def identity(self) -> Identity:
        return Identity(id=self.id, name=self.name, email=self.email, role=self.role)
