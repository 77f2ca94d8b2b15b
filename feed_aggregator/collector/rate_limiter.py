"""Dynamic request throttling driven by upstream rate-limit headers."""

import asyncio
import logging
import math
import time
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


def _header(headers: Mapping[str, Any], name: str) -> Optional[Any]:
    """Case-insensitive header lookup that also works on plain dicts."""
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class RateLimiter:
    """
    Throttle for upstream API requests.

    Keeps a single ``next_allowed_at`` timestamp. Each response spreads the
    remaining request budget evenly across the reset window; without headers
    a fixed base delay is used.
    """

    def __init__(self, base_delay_sec: float = 0.25, cooldown_sec: float = 900.0):
        """
        Initialize the rate limiter.

        Args:
            base_delay_sec: Spacing used when rate-limit headers are absent
            cooldown_sec: Cooldown length; a 429 pushes back a tenth of it (min 30s)
        """
        self.base_delay_sec = base_delay_sec
        self.cooldown_sec = cooldown_sec
        self.next_allowed_at = 0.0
        self.remaining_calls: Optional[int] = None
        self.reset_seconds: Optional[float] = None

    def wait_time(self) -> float:
        return max(0.0, self.next_allowed_at - time.time())

    async def pre_request(self) -> None:
        """
        Sleep until the next request is allowed.

        This should be called before each upstream request.
        """
        wait = self.wait_time()
        if wait > 0:
            logger.debug(f"Throttling request for {wait:.2f}s")
            await asyncio.sleep(wait)

    def update_from_headers(self, headers: Mapping[str, Any]) -> float:
        """
        Update throttling from ``x-ratelimit-remaining`` / ``x-ratelimit-reset``.

        Args:
            headers: Response headers from an upstream request

        Returns:
            The spacing in seconds applied before the next request
        """
        remaining = reset = None
        try:
            remaining = float(_header(headers, "x-ratelimit-remaining"))
            reset = float(_header(headers, "x-ratelimit-reset"))
        except (TypeError, ValueError):
            remaining = reset = None

        if remaining is not None and reset is not None and reset > 0:
            self.remaining_calls = int(remaining)
            self.reset_seconds = reset
            spacing = math.ceil(reset * 1000 / max(1.0, remaining)) / 1000.0
            logger.debug(
                f"Rate headers -> remaining={remaining:.0f}, reset={reset:.0f}s, per-request delay={spacing:.3f}s"
            )
        else:
            self.remaining_calls = None
            self.reset_seconds = None
            spacing = self.base_delay_sec

        self.next_allowed_at = time.time() + spacing
        return spacing

    def push_back(self, seconds: float) -> None:
        self.next_allowed_at = time.time() + seconds

    def handle_429(self) -> float:
        """Push the next request out after a 429 Too Many Requests response."""
        wait_seconds = max(self.cooldown_sec / 10, 30.0)
        logger.warning(f"Rate limited (429). Next request allowed in {wait_seconds:.0f}s")
        self.push_back(wait_seconds)
        return wait_seconds

    def handle_timeout(self) -> float:
        """Push the next request out moderately after a timeout or transient error."""
        wait_seconds = self.base_delay_sec * 4
        self.push_back(wait_seconds)
        return wait_seconds
