"""API-Routen für das FLIGHTHOUR Portal."""

from app.api.exception_handlers import (
    AppException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RateLimitException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from app.api.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitTier,
    limit,
    rate_limiter,
)

__all__ = [
    # Exceptions
    "AppException",
    "ValidationException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "RateLimitException",
    "register_exception_handlers",
    # Rate Limiter
    "InMemoryRateLimiter",
    "RateLimitTier",
    "limit",
    "rate_limiter",
]
