"""In-Memory Rate-Limiter für öffentliche Token-Links und die Shop-API."""

import time
from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from fastapi import Request

from app.api.exception_handlers import RateLimitException


class RateLimitTier(str, Enum):
    """Rate-Limit-Stufen für verschiedene Endpoint-Typen."""

    # Öffentliche Einmal-Links (MAYDAY, Rebook, Schichtübernahme)
    PUBLIC_TOKEN = "public_token"
    # Externes Shop-System (x-api-key)
    SHOP_API = "shop_api"


@dataclass(frozen=True)
class RateLimitConfig:
    requests: int
    window_seconds: int


RATE_LIMITS: dict[RateLimitTier, RateLimitConfig] = {
    RateLimitTier.PUBLIC_TOKEN: RateLimitConfig(requests=20, window_seconds=60),
    RateLimitTier.SHOP_API: RateLimitConfig(requests=60, window_seconds=60),
}


class InMemoryRateLimiter:
    """
    Sliding-Window Rate-Limiter pro Client-IP und Stufe.

    Läuft pro Prozess. Mehrere Worker zählen getrennt.
    """

    def __init__(self, cleanup_interval: int = 300):
        # {(client_key, tier): deque[timestamp]}
        self._hits: dict[tuple[str, RateLimitTier], deque[float]] = defaultdict(deque)
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = cleanup_interval

    @staticmethod
    def client_key(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _prune(self, hits: deque[float], window_start: float) -> None:
        while hits and hits[0] <= window_start:
            hits.popleft()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        for key in list(self._hits.keys()):
            config = RATE_LIMITS[key[1]]
            self._prune(self._hits[key], now - config.window_seconds)
            if not self._hits[key]:
                del self._hits[key]
        self._last_cleanup = now

    def hit(self, key: str, tier: RateLimitTier) -> tuple[bool, int]:
        """
        Zählt einen Request.

        Returns:
            (is_limited, retry_after_seconds)
        """
        now = time.monotonic()
        self._cleanup(now)

        config = RATE_LIMITS[tier]
        hits = self._hits[(key, tier)]
        self._prune(hits, now - config.window_seconds)

        if len(hits) >= config.requests:
            retry_after = int(hits[0] + config.window_seconds - now) + 1
            return True, max(retry_after, 1)

        hits.append(now)
        return False, 0

    def remaining(self, key: str, tier: RateLimitTier) -> int:
        config = RATE_LIMITS[tier]
        hits = self._hits.get((key, tier))
        if not hits:
            return config.requests
        self._prune(hits, time.monotonic() - config.window_seconds)
        return max(0, config.requests - len(hits))

    def reset(self) -> None:
        self._hits.clear()


rate_limiter = InMemoryRateLimiter()


def limit(tier: RateLimitTier) -> Callable[[Request], Awaitable[None]]:
    """
    Erzeugt eine Dependency für Rate-Limiting.

    Beispiel:
        @router.get("/availability", dependencies=[Depends(limit(RateLimitTier.SHOP_API))])
    """

    async def _check(request: Request) -> None:
        is_limited, retry_after = rate_limiter.hit(rate_limiter.client_key(request), tier)
        if is_limited:
            raise RateLimitException(
                f"Zu viele Anfragen. Bitte {retry_after} Sekunden warten."
            )

    return _check
