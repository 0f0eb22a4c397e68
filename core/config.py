"""
core/config.py -- Environment-driven settings for the Acquisitions API.

Every tunable the service reads lives on Settings. Other modules call
get_settings() rather than reading os.environ themselves, so there is one
place to look when a deployment misbehaves.

How values are resolved:
  pydantic-settings maps each field to an upper-cased environment variable
  (token_expire_seconds -> TOKEN_EXPIRE_SECONDS), falling back to a .env file
  in the working directory and then to the field default. Types are coerced
  on the way in, so DEBUG=1 and DEBUG=true both yield True.

  get_settings() is wrapped in lru_cache: the first call builds Settings, the
  rest get the same object. The app lifespan hands the values to the token
  service, the hasher and the store once at startup.

Signing key policy (enforced in check_startup_invariants):
  DEBUG=true   a missing SECRET_KEY is replaced by a random one and a warning
               is logged. Every restart then signs out every session.
  DEBUG=false  a missing SECRET_KEY stops the process. Workers with
               different random keys would reject each other's cookies.
  always       the key must be 32+ characters; HS256 is only as strong as it.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("acquisitions.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'acquisitions.db'}"
_MIN_SECRET_LEN = 32


class Settings(BaseSettings):
    """Runtime configuration. Defaults are enough to build one in a test."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- service -------------------------------------------------------

    debug: bool = False
    # "" means unset; check_startup_invariants replaces or rejects it.
    secret_key: str = ""
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost:3000"]

    # --- session cookie ------------------------------------------------

    # One value drives both the token exp claim and the cookie Max-Age.
    token_expire_seconds: int = 24 * 60 * 60
    cookie_name: str = "token"
    secure_cookies: bool = False

    # --- sign-up / sign-in throttling ----------------------------------

    auth_rate_limit: str = "10/minute"
    rate_limit_storage_uri: str = "memory://"

    @property
    def cookie_secure(self) -> bool:
        """Cookies are secure in production even when SECURE_COOKIES is unset."""
        return self.secure_cookies or not self.debug

    @model_validator(mode="after")
    def check_startup_invariants(self) -> "Settings":
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is required when DEBUG is off. Export it or add it to .env; "
                    "set DEBUG=true for a throwaway development key."
                )
            self.secret_key = secrets.token_urlsafe(48)
            logger.warning("SECRET_KEY not set; generated a temporary one. Sessions end when the process exits.")
        if len(self.secret_key) < _MIN_SECRET_LEN:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LEN} characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first use and return the cached instance afterwards.

    Tests that need different environment values construct Settings directly
    or call get_settings.cache_clear().
    """
    return Settings()
