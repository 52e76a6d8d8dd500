"""
Rate Limiting for FastAPI

Protects the credential endpoints (login, re-authentication) against brute
force attempts. Export frequency is governed separately by the 24 hour
cool-down in the export service.
"""

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from privacyflow.config import settings

LOGIN_LIMIT = "10/minute"
REAUTH_LIMIT = "5/minute"

# Create rate limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/hour"],
    storage_uri=settings.redis_url or "memory://",
    headers_enabled=True,
    enabled=settings.rate_limit_enabled,
)


def configure_rate_limiting(app):
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
