"""Bounded exponential-backoff retry for outbound calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``fn`` and retry it on retryable failures.

    The call is attempted ``max_retries + 1`` times in total. Before retry
    number ``n`` (0-based) the coroutine sleeps ``initial_delay * 2 ** n``.
    Non-retryable errors are re-raised immediately; once attempts run out the
    last error is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            info = classify_error(e)
            if not info.retryable:
                logger.debug(f"Not retrying {info.type} error: {info.message}")
                raise
            if attempt >= max_retries:
                logger.warning(f"Giving up after {attempt + 1} attempts: {info.message}")
                raise

            delay = initial_delay * (2 ** attempt)
            logger.info(
                f"Attempt {attempt + 1}/{max_retries + 1} failed ({info.type}), "
                f"retrying in {delay:.1f}s"
            )
            await sleep(delay)
            attempt += 1
