"""
Retry with server rotation and exponential backoff.

A directory request is attempted against the current server of a
``ServerPool``; every failure rotates to the next server and waits
``backoff_base * 2 ** min(attempt - 1, 3)`` seconds. The total number of
attempts is ``min(retries * pool size, max_retries)``.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from channelharvest.errors import FetchError, SourceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry configuration for one directory."""

    retries: int = 3
    max_retries: int = 5
    backoff_base: float = 1.0
    backoff_max: float = 30.0

    def max_attempts(self, pool_size: int) -> int:
        return max(1, min(self.retries * max(pool_size, 1), self.max_retries))

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.backoff_base * (2 ** min(attempt - 1, 3)), self.backoff_max)


class ServerPool:
    """Ordered list of interchangeable base URLs with a rotating cursor."""

    def __init__(self, servers: list[str], shuffle: bool = False):
        cleaned = [s.rstrip("/") for s in servers if s]
        if shuffle:
            random.shuffle(cleaned)
        self.servers = cleaned
        self._index = 0

    @property
    def current(self) -> str:
        if not self.servers:
            raise SourceUnavailableError("server pool", 0, None)
        return self.servers[self._index % len(self.servers)]

    def rotate(self) -> str:
        self._index = (self._index + 1) % max(len(self.servers), 1)
        return self.current

    def __len__(self) -> int:
        return len(self.servers)


async def fetch_with_retry(
    operation: Callable[[str], Awaitable[T]],
    pool: ServerPool,
    policy: Optional[RetryPolicy] = None,
    operation_name: str = "request",
) -> T:
    """
    Run ``operation(server)`` until it succeeds or attempts run out.

    Only ``FetchError`` is retried. Parse errors propagate immediately
    since a malformed body rarely improves on retry.

    Raises:
        SourceUnavailableError: After the last failed attempt.
    """
    policy = policy or RetryPolicy()
    attempts = policy.max_attempts(len(pool))
    last_error: Optional[FetchError] = None

    for attempt in range(1, attempts + 1):
        server = pool.current
        try:
            result = await operation(server)
            if attempt > 1:
                logger.info(f"{operation_name} succeeded on attempt {attempt} via {server}")
            return result
        except FetchError as e:
            last_error = e
            logger.warning(
                f"{operation_name} failed (attempt {attempt}/{attempts}) via {server}: {e}"
            )
            pool.rotate()
            if attempt < attempts:
                delay = policy.backoff(attempt)
                logger.debug(f"Waiting {delay:.1f}s before retry...")
                await asyncio.sleep(delay)

    raise SourceUnavailableError(operation_name, attempts, last_error)
