# optional retry helper; nothing in the core calls it implicitly
# callers wrap a blocking generate call when they want rate-limit / connection retries

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from modelbridge.core.errors import ProviderConnectionError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_should_retry(exc: BaseException) -> bool:
    return isinstance(exc, (RateLimitError, ProviderConnectionError))


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    should_retry = should_retry or _default_should_retry
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as e:
            if attempt >= attempts - 1 or not should_retry(e):
                raise
            delay = RateLimitError.calculate_backoff(attempt, initial_delay, max_delay)
            # a server-provided Retry-After wins over our own schedule
            if isinstance(e, RateLimitError) and e.retry_after:
                delay = min(float(e.retry_after), max_delay)
            logger.info("attempt %d/%d failed (%s), retrying in %.2fs", attempt + 1, attempts, e, delay)
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover
