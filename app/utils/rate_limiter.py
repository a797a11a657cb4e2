"""
Rate Limiter Configuration

Supports both in-memory and Redis storage for rate limiting.
Redis is recommended for production (multiple instances).
"""

import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_limiter() -> Limiter:
    """
    Create a rate limiter with appropriate storage backend.
    Uses Redis if REDIS_URL is configured, otherwise in-memory.
    """
    if settings.redis_url:
        logger.info("Using Redis rate limiter storage")
        return Limiter(
            key_func=get_real_client_ip,
            storage_uri=settings.redis_url,
            default_limits=["100/minute"],
            enabled=settings.rate_limit_enabled,
        )

    # In-memory storage (for development or single instance)
    return Limiter(
        key_func=get_real_client_ip,
        default_limits=["100/minute"],
        enabled=settings.rate_limit_enabled,
    )


# Global rate limiter instance
limiter = create_limiter()


# ================================
# RATE LIMIT CONFIGURATIONS
# ================================

RATE_LIMITS = {
    # Booking writes - moderate limits
    "booking_create": "30/minute",
    "booking_update": "60/minute",
    "booking_cancel": "20/minute",

    # Inventory/calendar writes
    "inventory_update": "60/minute",
    "inventory_bulk": "10/minute",
    "calendar_update": "60/minute",

    # Read Operations - relaxed limits
    "availability": "120/minute",
    "calendar": "120/minute",
}


def get_rate_limit(operation: str) -> str:
    """Get rate limit for a specific operation."""
    return RATE_LIMITS.get(operation, "100/minute")
