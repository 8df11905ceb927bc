"""Retry with exponential backoff for calls to external services."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from nvault.core.config import EMBEDDING_BASE_DELAY, EMBEDDING_MAX_ATTEMPTS
from nvault.core.errors import NeuralVaultError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Default predicate: honour the error's own ``retryable`` flag."""
    return isinstance(exc, NeuralVaultError) and exc.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry schedule.

    ``max_attempts`` counts the first call; delays before each retry are
    ``base_delay * factor ** n`` capped at ``max_delay`` (1s, 2s, 4s, 8s with
    the defaults).
    """

    max_attempts: int = EMBEDDING_MAX_ATTEMPTS
    base_delay: float = EMBEDDING_BASE_DELAY
    factor: float = 2.0
    max_delay: float = 30.0
    retry_on: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.factor < 1:
            raise ValueError("base_delay must be >= 0 and factor >= 1")

    def delays(self) -> list[float]:
        """Delays that precede each retry, in order."""
        return [
            min(self.base_delay * self.factor**n, self.max_delay)
            for n in range(self.max_attempts - 1)
        ]

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn()`` until it succeeds, fails permanently or runs out."""
        delays = self.delays()
        for attempt in range(self.max_attempts):
            try:
                return await fn()
            except Exception as exc:
                if attempt >= len(delays) or not self.retry_on(exc):
                    raise
                logger.info(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt + 1,
                    self.max_attempts,
                    exc,
                    delays[attempt],
                )
                await self.sleep(delays[attempt])
        raise AssertionError("unreachable")
