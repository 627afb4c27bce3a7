"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies per-route
limits to login and register with @limiter.limit().

All routes must share this one instance so they share one counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
