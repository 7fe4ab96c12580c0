"""Bounded jittered backoff for idempotent secret-store calls."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 1
DEFAULT_BASE_DELAY_SECONDS = 0.2
DEFAULT_MAX_DELAY_SECONDS = 5.0
DEFAULT_JITTER_RATIO = 0.2


def _jitter_delay(delay_seconds: float, jitter_ratio: float) -> float:
    if delay_seconds <= 0 or jitter_ratio <= 0:
        return max(0.0, delay_seconds)
    window = delay_seconds * jitter_ratio
    return max(0.0, delay_seconds + random.uniform(-window, window))


def retry_store_call(
    operation: Callable[[], T],
    *,
    is_transient: Callable[[Exception], bool],
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
    max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS,
    jitter_ratio: float = DEFAULT_JITTER_RATIO,
    description: str = "secret store call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying errors ``is_transient`` accepts.

    With the default single attempt the call runs exactly once and any error
    propagates unchanged.
    """
    attempts = max(1, attempts)
    delay_seconds = max(0.0, base_delay_seconds)
    max_delay_seconds = max(delay_seconds, max_delay_seconds)

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as error:  # noqa: BLE001
            if attempt >= attempts or not is_transient(error):
                raise
            logger.debug(
                "%s failed (attempt %d/%d), retrying: %s",
                description,
                attempt,
                attempts,
                error,
            )
            sleep(_jitter_delay(delay_seconds, jitter_ratio))
            delay_seconds = min(max_delay_seconds, delay_seconds * 2)

    raise RuntimeError("retry_store_call exhausted attempts without a terminal result")
