"""Bounded retry with exponential backoff for outbound calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.2
    multiplier: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * (self.multiplier ** (attempt - 1))


DEFAULT_RETRY_POLICY = RetryPolicy()


def with_retry(operation: Callable[[], T], policy: RetryPolicy = DEFAULT_RETRY_POLICY, *, label: str = "operation") -> T:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is exhausted; re-raise the last error."""
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except policy.retry_on as exc:
            if attempt >= attempts:
                logger.warning("%s failed after %s attempts: %s", label, attempts, exc)
                raise
            delay = policy.delay_for(attempt)
            logger.info("%s failed (attempt %s/%s): %s. Retrying in %.2fs.", label, attempt, attempts, exc, delay)
            time.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


__all__ = ["DEFAULT_RETRY_POLICY", "RetryPolicy", "with_retry"]
