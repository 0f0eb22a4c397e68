"""
auth/passwords.py -- bcrypt password hashing and verification.

Calls bcrypt directly; there is no passlib CryptContext in between.

Cost factor: BCRYPT_ROUNDS (10) is fixed by the application, never taken from
user input. Tests pass a lower value to the constructor for speed.

Length: bcrypt only reads the first MAX_PASSWORD_BYTES (72) bytes of its input.
Anything longer would collide with its own prefix, so hash() refuses it with a
ValidationError and verify() reports it as a mismatch. Sign-up rejects such
passwords earlier, in api/models.py.

Failure semantics:
  hash()   -> ValidationError when the password is over the byte limit,
              HashingError on any internal bcrypt failure.
  verify() -> False on mismatch. HashingError only when the stored hash is
              malformed.

Timing: bcrypt.checkpw compares digests in constant time. burn() runs one
verify against a dummy hash so callers can spend the same work on a lookup
miss as on a real comparison.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError, ValidationError

logger = logging.getLogger("acquisitions.auth")

BCRYPT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = "acquisitions_timing_dummy"


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        # Computed once here so the first miss is not slower than later ones.
        self._dummy_hash = self.hash(_DUMMY_PASSWORD)

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of the given plaintext password."""
        if password_too_long(plain):
            raise ValidationError(
                "Password is too long",
                details=[{"field": "password", "message": f"Password must be at most {MAX_PASSWORD_BYTES} bytes"}],
            )
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
        except Exception as exc:
            logger.error("Error hashing the password: %s", exc)
            raise HashingError("Error hashing password") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        An over-long password cannot have produced any stored hash. The dummy
        comparison still runs so the answer takes as long as a real one.
        """
        if password_too_long(plain):
            self.burn(_DUMMY_PASSWORD)
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            logger.error("Error comparing passwords: %s", exc)
            raise HashingError("Error comparing passwords") from exc

    def burn(self, plain: str) -> None:
        """Spend one verify's worth of work without a real hash to compare against."""
        self.verify(plain, self._dummy_hash)
