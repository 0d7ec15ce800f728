"""
Rate limiter instance for slowapi.

Shared by app.main (app.state.limiter) and the permission routes so both use
the same instance without circular imports.
"""
from slowapi import Limiter

from app.core import config


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Requests without a token share one bucket.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"


limiter = Limiter(key_func=get_authorization_header)

limit_grant_writes = limiter.limit(config.GRANT_WRITE_LIMIT)
