"""Request rate limiting for the order API.

This is coarse per-client throttling on mutations. The one-comment-per-second
rule on order threads is enforced by the database, not here.
"""

import logging
import os

import redis
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
MUTATION_LIMIT = f"{max(settings.RATE_LIMIT_API, 1)}/minute"


def actor_or_ip_key(request: Request) -> str:
    """Key by authenticated actor when the auth dependency has run, else by IP."""
    actor = getattr(request.state, "actor", None)
    if actor is not None:
        return f"user:{actor.user_id}"
    return get_remote_address(request)


def _storage_uri() -> str:
    """Redis when configured and reachable (shared across workers), else memory."""
    if IS_TESTING or not settings.REDIS_URL:
        return "memory://"
    try:
        redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping()
    except redis.RedisError as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return "memory://"
    return settings.REDIS_URL


limiter = Limiter(
    key_func=actor_or_ip_key,
    storage_uri=_storage_uri(),
    enabled=not IS_TESTING and settings.RATE_LIMIT_API > 0,
)
