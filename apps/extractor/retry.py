"""
Retry Policy - Exponential Backoff Around Remote Calls

An explicit policy object (attempt ceiling, base delay, multiplier, cap and a
retryable-error predicate) that wraps a callable with tenacity's imperative
`Retrying` controller.

Usage:
    from apps.extractor.retry import RetryPolicy

    policy = RetryPolicy(max_attempts=3, base_delay=1.0)
    envelope = policy.call(fetch, url)
"""

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from utils.config import settings
from utils.errors import TransientRemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Default predicate: only transient remote errors are retried."""
    return isinstance(exc, TransientRemoteError)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ceiling and exponential backoff schedule.

    The wait before attempt n+1 is base_delay * multiplier ** (n - 1),
    capped at max_delay.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable: Callable[[BaseException], bool] = is_transient
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.EXTRACT_MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY,
            multiplier=settings.RETRY_MULTIPLIER,
            max_delay=settings.RETRY_MAX_DELAY,
        )

    def with_max_attempts(self, max_attempts: int) -> "RetryPolicy":
        return dataclasses.replace(self, max_attempts=max(1, max_attempts))

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Invoke `fn`, retrying while the raised error satisfies `retryable`.

        Raises:
            Exception: The last error once attempts are exhausted, or the
                first non-retryable error unchanged
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                min=0,
                max=self.max_delay,
            ),
            retry=retry_if_exception(self.retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self.sleep,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)
