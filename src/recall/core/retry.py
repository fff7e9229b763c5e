import asyncio
import logging
import random
from collections.abc import Callable
from typing import Any

import httpx

from recall.domain.exceptions import ProviderRateLimitError, ProviderUnavailableError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ProviderUnavailableError,
    ProviderRateLimitError,
    httpx.TransportError,
)


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on

    def calculate_backoff_time(self, attempt: int) -> float:
        """
        Calculate the backoff time for a retry attempt.
        """
        return min(
            self.max_delay, self.base_delay * (2**attempt) + random.uniform(0, self.base_delay)
        )

    async def execute_with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """Await `func`, retrying only errors listed in `retry_on`; anything else propagates at once."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except self.retry_on as exc:
                if attempt == self.max_attempts:
                    raise
                backoff_time = self.calculate_backoff_time(attempt)
                logger.info(
                    "Attempt %d/%d failed (%s); retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    type(exc).__name__,
                    backoff_time,
                )
                await asyncio.sleep(backoff_time)
