from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from booking_engine.application.exceptions import NetworkError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 15.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based): min(base * 2**attempt, max)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        action: str = "",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Run `operation`, retrying only NetworkError; every other error surfaces immediately."""
        attempt = 0
        while True:
            try:
                return await operation()
            except NetworkError:
                attempt += 1
                if attempt >= self.max_attempts:
                    logger.error("Giving up after transient failures", extra={"action": action, "attempt": attempt})
                    raise
                delay = self.delay_for(attempt - 1)
                logger.warning(
                    "Transient failure, retrying in %.1fs",
                    delay,
                    extra={"action": action, "attempt": attempt},
                )
                await sleep(delay)
