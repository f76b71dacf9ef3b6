"""Bounded retry for configuration-store reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from amplugins.device_attributes.exceptions import ConfigAccessError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_read_retries(
    operation_name: str,
    operation_func: Callable[[], Awaitable[T]],
    max_retries: int = 0,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
) -> T:
    """Run a read, retrying ConfigAccessError with exponential backoff.

    Any other exception is re-raised immediately. After ``max_retries``
    failed retries the last ConfigAccessError is re-raised.
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await operation_func()
        except ConfigAccessError as e:
            if attempt >= max_retries:
                raise
            logger.warning(
                "%s attempt %d failed, retrying in %.2fs: %s",
                operation_name, attempt + 1, delay, e,
            )
            await asyncio.sleep(delay)
            delay *= backoff_factor

    raise AssertionError("unreachable")
