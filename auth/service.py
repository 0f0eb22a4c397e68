"""
auth/service.py -- Authentication flow and user management over a CredentialStore.

AuthService orchestrates the store and the password hasher. Routes call it;
it never touches HTTP objects and never touches SQL.

Sign-in [no enumeration]:
  authenticate() raises the same InvalidCredentialsError for an unknown email
  and for a wrong password. The unknown-email path still runs one bcrypt
  verify (PasswordHasher.burn) so response time does not reveal which case
  occurred. Do NOT inline find_by_email() + verify() in a route -- that
  re-introduces the timing difference.

Uniqueness [check-then-act]:
  register() and update_user() pre-check the email with find_by_email(), then
  write in a separate store call. Two concurrent requests can both pass the
  check; the UNIQUE constraint on users.email rejects the loser, and the
  resulting ConstraintViolation is mapped to the same DuplicateEmailError.

Not found:
  The store returns None for absent rows; this module turns None into
  NotFoundError. An empty result is never treated as success.
"""

from __future__ import annotations

import logging
from typing import Any

from auth.errors import ConstraintViolation, DuplicateEmailError, InvalidCredentialsError, NotFoundError
from auth.models import Identity, Role, UserRecord
from auth.passwords import PasswordHasher
from auth.store import CredentialStore

logger = logging.getLogger("acquisitions.auth")


class AuthService:
    def __init__(self, store: CredentialStore, hasher: PasswordHasher) -> None:
        self.store = store
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Sign-up / sign-in
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, role: Role, password: str) -> Identity:
        """Create a user and return its public identity (never the hash)."""
        if self.store.find_by_email(email) is not None:
            logger.info("Registration rejected, email already in use: %s", email)
            raise DuplicateEmailError()

        password_hash = self.hasher.hash(password)
        try:
            record = self.store.insert(
                {"name": name, "email": email, "role": Role(role), "password_hash": password_hash}
            )
        except ConstraintViolation as exc:
            logger.info("Registration lost uniqueness race for %s", email)
            raise DuplicateEmailError() from exc

        logger.info("User %s created successfully", record.email)
        return record.identity()

    def authenticate(self, email: str, password: str) -> Identity:
        """Verify an email/password pair. Raises InvalidCredentialsError on any mismatch."""
        record = self.store.find_by_email(email)
        if record is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            self.hasher.burn(password)
            logger.warning("Failed sign-in attempt")
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, record.password_hash):
            logger.warning("Failed sign-in attempt")
            raise InvalidCredentialsError()

        logger.info("User %s authenticated successfully", record.email)
        return record.identity()

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserRecord]:
        return self.store.list_all()

    def get_user(self, user_id: int) -> UserRecord:
        record = self.store.find_by_id(user_id)
        if record is None:
            raise NotFoundError()
        return record

    def update_user(self, user_id: int, changes: dict[str, Any]) -> UserRecord:
        """Apply profile changes. Authorization is the caller's job.

        `changes` may hold name, email and role. An email that belongs to a
        different user raises DuplicateEmailError before anything is written.
        """
        existing = self.get_user(user_id)

        email = changes.get("email")
        if email is not None and email != existing.email:
            if self.store.find_by_email(email) is not None:
                raise DuplicateEmailError(error="Email already exists")

        try:
            updated = self.store.update(user_id, changes)
        except ConstraintViolation as exc:
            raise DuplicateEmailError(error="Email already exists") from exc
        if updated is None:
            # Deleted between the existence check and the write.
            raise NotFoundError()

        logger.info("User %s updated successfully", updated.email)
        return updated

    def delete_user(self, user_id: int) -> Identity:
        deleted = self.store.delete(user_id)
        if deleted is None:
            raise NotFoundError()
        logger.info("User %s deleted successfully", deleted.email)
        return deleted.identity()
