"""
auth/tokens.py -- Signed session tokens and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the identity claim (id, name, email, role) plus iat and exp. They are
       stateless -- there is no server-side session table, so verify() never
       touches the store. The price is that a role change or account deletion
       does not invalidate tokens already issued; they stay valid until exp.
       That trade-off is accepted for this service and must not be "fixed"
       by quietly re-reading the store here.

  Verification raises InvalidTokenError on any failure (bad signature,
       malformed structure, missing/ill-typed claims, expired). Each segment
       must also be canonical base64url: the decoder ignores the spare low
       bits of a segment's last character, so without the check a token with
       one character changed could still verify. The request gate turns any
       of these into 401 without telling the client which check failed.

  SECRET_KEY: injected by the app lifespan from core.config.get_settings().
       An empty key raises ConfigurationError at construction, so a
       misconfigured deployment fails at startup rather than on first request.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import ConfigurationError, InvalidTokenError
from auth.models import Identity

if TYPE_CHECKING:
    from starlette.responses import Response

    from core.config import Settings

_ALGORITHM = "HS256"


class TokenService:
    """Issue and verify compact, expiring, tamper-evident session tokens."""

    def __init__(self, secret_key: str, ttl_seconds: int, algorithm: str = _ALGORITHM) -> None:
        if not secret_key:
            raise ConfigurationError("No signing secret configured for session tokens")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm

    def sign(self, identity: Identity) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(identity.id),
            **identity.to_claims(),
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        """Decode and verify a token. Returns the embedded claim unchanged."""
        if not _is_canonical(token):
            raise InvalidTokenError("Token segment is not canonical base64url")
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        try:
            return Identity.from_claims(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError(f"Malformed identity claim: {exc}") from exc


def _is_canonical(token: str) -> bool:
    """True when every segment re-encodes to exactly the text it was decoded from."""
    try:
        for segment in token.split("."):
            raw = segment.encode("ascii")
            if base64url_encode(base64url_decode(raw)) != raw:
                return False
    except ValueError:
        # binascii.Error and UnicodeEncodeError are both ValueErrors.
        return False
    return True


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: HTTPS-only in production (see Settings.cookie_secure).
    max_age: matches the token TTL so both expire together.
    """
    response.set_cookie(
        settings.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
        max_age=settings.token_expire_seconds,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie immediately. The token itself stays valid until exp."""
    response.delete_cookie(
        settings.cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
