"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/auth.py (to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share the same counter store.
Separate instances per module would each keep an isolated counter and the
limits would never trigger. The default in-memory store is per-process; set
RATE_LIMIT_STORAGE_URI (e.g. redis://...) when running several workers.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri=get_settings().rate_limit_storage_uri)
