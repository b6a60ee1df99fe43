"""Bounded retry loop with a fixed sleep interval.

The loop keeps re-running an action against the same world until it
succeeds or the time budget runs out. Time is accounted in milliseconds:
each attempt is measured with the clock, while sleeps are added to the
running total without re-measuring. Under scheduler jitter the total can
drift from real wall time by the difference between requested and actual
sleep; the budget is a bound on attempts, not a precise deadline.

Example:
    >>> loop = RetryLoop(timeout_ms=300, sleep_ms=10)
    >>> result = loop.run(check_order_shipped, world)
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable
from typing import Any

from stepflow.core.models import Counters, StepResult
from stepflow.errors import FailureKind, fail_message, format_exception

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 300.0
DEFAULT_SLEEP_MS = 10.0

RetryObserver = Callable[[int, float, StepResult], None]


def timed_apply(
    clock: Callable[[], float],
    fn: Callable[..., StepResult],
    *args: Any,
) -> tuple[float, StepResult]:
    """Call ``fn`` and return ``(elapsed_ms, result)``."""
    start = clock()
    result = fn(*args)
    elapsed_ms = (clock() - start) * 1000.0
    return elapsed_ms, result


class RetryLoop:
    """Retries an action with a fixed sleep until success or timeout.

    Attributes:
        timeout_ms: Total time budget.
        sleep_ms: Pause between attempts. Must be positive so the loop
            always terminates.
    """

    def __init__(
        self,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        sleep_ms: float = DEFAULT_SLEEP_MS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the loop.

        Args:
            timeout_ms: Total time budget in milliseconds.
            sleep_ms: Pause between attempts in milliseconds.
            sleep: Sleep function taking seconds (injectable for tests).
            clock: Monotonic clock returning seconds (injectable for tests).

        Raises:
            ValueError: If ``sleep_ms`` is not positive or ``timeout_ms``
                is negative.
        """
        if sleep_ms <= 0:
            raise ValueError(f"sleep_ms must be greater than zero, got {sleep_ms}")
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms cannot be negative, got {timeout_ms}")
        self.timeout_ms = timeout_ms
        self.sleep_ms = sleep_ms
        self._sleep = sleep
        self._clock = clock

    def should_retry(self, elapsed_ms: float) -> bool:
        """Whether another attempt fits the budget after the next sleep."""
        return elapsed_ms + self.sleep_ms <= self.timeout_ms

    def run(
        self,
        action: Callable[[Any], StepResult],
        world: Any,
        counters: Counters | None = None,
        on_retry: RetryObserver | None = None,
    ) -> StepResult:
        """Run ``action`` until it succeeds or the budget is exhausted.

        Args:
            action: Callable taking a world and returning a StepResult.
            world: World handed to every attempt (as a shallow copy, so an
                attempt cannot leak changes into the next one).
            counters: Counters restored to their entry values before every
                attempt, so only the final attempt's bookkeeping survives.
            on_retry: Called with ``(attempt, elapsed_ms, result)`` after
                each failed attempt that will be retried.

        Returns:
            The first successful result, or the last failed one marked
            ``RETRY_EXHAUSTED`` with its diagnostic text unchanged. A world
            that cannot be copied fails at once with ``ACTION_EXCEPTION``.
        """
        baseline = counters.snapshot() if counters is not None else None
        elapsed_ms = 0.0
        attempt = 0

        while True:
            attempt += 1
            if counters is not None and baseline is not None:
                counters.restore(baseline)

            try:
                attempt_world = copy.copy(world)
            except Exception as exc:
                logger.debug("World of type %s cannot be copied: %s", type(world).__name__, exc)
                return StepResult.failed(
                    fail_message(
                        f"'copy.copy({type(world).__name__})'",
                        "threw exception:\n",
                        format_exception(exc),
                    ),
                    FailureKind.ACTION_EXCEPTION,
                )

            took_ms, result = timed_apply(self._clock, action, attempt_world)
            elapsed_ms += took_ms

            if result.ok:
                if attempt > 1:
                    logger.debug("Succeeded on attempt %d after %.1fms", attempt, elapsed_ms)
                return result

            if not self.should_retry(elapsed_ms):
                logger.debug("Gave up after %d attempt(s), %.1fms", attempt, elapsed_ms)
                return StepResult.failed(result.description, FailureKind.RETRY_EXHAUSTED)

            if on_retry is not None:
                on_retry(attempt, elapsed_ms, result)
            self._sleep(self.sleep_ms / 1000.0)
            elapsed_ms += self.sleep_ms
