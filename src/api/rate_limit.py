"""
Shared slowapi limiter

The app applies `default_limits` to every route through SlowAPIMiddleware;
routes decorated with `limiter.limit(...)` use their own limit instead.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from config.config import API_RATE_LIMIT

# Keyed by IP, not by user, so many users behind one router share it
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    storage_uri="memory://",
)
