"""Rate limiting middleware using SlowAPI."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from mindsy.config import get_settings

settings = get_settings()


def get_user_or_ip(request: Request) -> str:
    """
    Get rate limit key from the session user or IP address.

    Uses the user id if authenticated, falls back to IP address.
    """
    # Set by the session auth dependency
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.id}"

    return f"ip:{get_remote_address(request)}"


# Redis in production, memory:// in tests
limiter = Limiter(
    key_func=get_user_or_ip,
    storage_uri=settings.rate_limit_storage_uri,
    strategy="fixed-window",
)


def rate_limit_generate():
    """Rate limit for the pipeline endpoints (generate, regenerate-pdf)."""
    return limiter.limit(settings.generate_rate_limit, key_func=get_user_or_ip)


def rate_limit_general():
    """Rate limit for query endpoints, per user."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute}/minute;{settings.rate_limit_per_hour}/hour",
        key_func=get_user_or_ip,
    )
