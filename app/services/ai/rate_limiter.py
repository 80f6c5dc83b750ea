"""
Rate limiting for outbound provider calls.

Two pieces:
- TokenBucket: per-provider request throttle awaited before every provider call
- RateLimitPolicy: the pause the project planner takes between phases
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from app.core.config import Settings

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Async token bucket.

    Tokens refill continuously at `rate` per second up to `burst_size`.
    Each request consumes one token.
    """

    def __init__(self, rate: float, burst_size: int):
        """
        Args:
            rate: Tokens per second to add
            burst_size: Maximum tokens (bucket capacity)
        """
        self._rate = rate
        self._burst_size = max(1, burst_size)
        self._tokens = float(self._burst_size)  # Start with full bucket
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_update
        self._tokens = min(self._burst_size, self._tokens + elapsed * self._rate)
        self._last_update = now

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def acquire(self) -> None:
        """Wait until a token is available and take it."""
        async with self._lock:
            while not self.try_acquire():
                wait_time = (1 - self._tokens) / self._rate if self._rate > 0 else 1.0
                logger.debug(f"Rate limit reached, waiting {wait_time:.2f}s for a token")
                await asyncio.sleep(wait_time)

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self._tokens


class ProviderRateLimiter:
    """One TokenBucket per provider, created on first use."""

    def __init__(self, requests_per_minute: float, burst_size: int):
        self._rate = requests_per_minute / 60.0
        self._burst_size = burst_size
        self._buckets: Dict[str, TokenBucket] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRateLimiter":
        return cls(settings.rate_limit_requests_per_minute, settings.rate_limit_burst)

    @property
    def enabled(self) -> bool:
        return self._rate > 0

    def bucket(self, provider: str) -> TokenBucket:
        if provider not in self._buckets:
            self._buckets[provider] = TokenBucket(self._rate, self._burst_size)
        return self._buckets[provider]

    async def acquire(self, provider: str) -> None:
        if not self.enabled:
            return
        await self.bucket(provider).acquire()


@dataclass
class RateLimitPolicy:
    """
    Pause inserted between consecutive phases of a project run.

    A delay of 0 disables the pause.
    """
    phase_delay_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitPolicy":
        return cls(phase_delay_seconds=settings.phase_delay_seconds)

    async def wait_between_phases(self, completed_phase: Optional[str] = None) -> None:
        if self.phase_delay_seconds <= 0:
            return
        logger.debug(
            f"Pausing {self.phase_delay_seconds}s after phase '{completed_phase}'"
        )
        await asyncio.sleep(self.phase_delay_seconds)
