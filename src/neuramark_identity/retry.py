"""Bounded exponential backoff for upstream calls.

Only transient failures are retried: :class:`TransientUpstreamError`,
:class:`TimeoutError` and :class:`ConnectionError`. Semantic failures
(not-found, conflict, validation) propagate on the first attempt.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

from neuramark_identity.errors import TransientUpstreamError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientUpstreamError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an upstream call and how long to wait between tries.

    Parameters
    ----------
    max_attempts:
        Total number of attempts, including the first. Must be >= 1.
    base_delay:
        Delay in seconds before the second attempt.
    max_delay:
        Upper bound for any single delay.
    multiplier:
        Growth factor applied to the delay after each failed attempt.
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative.")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1.")

    def delays(self) -> Iterator[float]:
        """Yield the delay before each retry (``max_attempts - 1`` values)."""
        delay = self.base_delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0.0)


def call_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation*, retrying transient failures according to *policy*.

    Parameters
    ----------
    operation:
        Zero-argument callable performing one upstream call.
    policy:
        Attempt count and backoff schedule.
    description:
        Short label used in log lines and the final error message.
    sleep:
        Injected for tests; defaults to :func:`time.sleep`.

    Returns
    -------
    T
        Whatever *operation* returns on its first successful attempt.

    Raises
    ------
    UpstreamUnavailableError
        If every attempt failed with a transient error.
    """
    delays = policy.delays()
    attempt = 1
    while True:
        try:
            return operation()
        except TRANSIENT_ERRORS as exc:
            delay = next(delays, None)
            if delay is None:
                raise UpstreamUnavailableError(
                    f"{description} failed after {attempt} attempt(s): {exc}"
                ) from exc
            logger.warning(
                "%s failed on attempt %d/%d (%s); retrying in %.2fs",
                description,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            sleep(delay)
            attempt += 1


__all__ = ["NO_RETRY", "RetryPolicy", "TRANSIENT_ERRORS", "call_with_retry"]
