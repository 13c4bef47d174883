"""
Rate limiting configuration for API endpoints.

Uses slowapi (FastAPI-compatible rate limiter) to throttle mutations:
- Default: 100 requests/minute
- Message send: 20 requests/minute (prevent spam)
- Channel create: 10 requests/minute
- Sign-up / sign-in: 10 requests/minute (slow down credential stuffing)
- Health check: No limit

Limits are keyed by user id when the caller is authenticated, otherwise by
client IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from typing import Optional

from app.config import settings


def get_user_identifier(request: Request) -> str:
    """
    Get unique identifier for rate limiting.

    ``request.state.user_id`` is set by the identity dependency, which runs
    before the limited endpoint body.
    """
    user_id: Optional[str] = getattr(request.state, "user_id", None)

    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=["100/minute"],
    storage_uri="memory://",  # Single-instance deployment; move to Redis when scaling out
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)
