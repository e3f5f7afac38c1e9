"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware, exposed on app.state.limiter)
and by api/routes/users.py (per-route limit on POST /api/ensure-user).

One shared instance means one counter store. The default in-memory store is
per process; set RATE_LIMIT_STORAGE_URI (e.g. redis://host:6379) when running
several workers so they count against the same budget.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_settings().rate_limit_storage_uri,
    headers_enabled=False,
)
