"""
Retry policy shared by every collaborator call (downloads, synthesis, uploads).
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Type

from ..logging_config import get_logger

logger = get_logger(__name__)


DelayFn = Callable[[int], float]


def exponential_backoff(base: float, cap: float) -> DelayFn:
    """
    Build a delay function returning min(base * 2^(attempt-1), cap).

    Args:
        base: Delay after the first failed attempt, in seconds
        cap: Upper bound for any single delay, in seconds

    Returns:
        Function mapping a 1-based attempt number to a delay in seconds
    """
    def delay(attempt: int) -> float:
        return min(base * (2 ** (attempt - 1)), cap)
    return delay


def constant_delay(seconds: float) -> DelayFn:
    return lambda attempt: seconds


def _always(exc: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """
    Bounded retry with a pluggable delay function.

    `timeout` is not enforced here; callers read it to configure the
    collaborator call they wrap, so one object describes the whole budget.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    delay_fn: Optional[DelayFn] = None
    timeout: Optional[float] = None
    retry_on: Callable[[BaseException], bool] = _always
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")
        if self.delay_fn is None:
            self.delay_fn = exponential_backoff(self.base_delay, float("inf"))

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given 1-based failed attempt."""
        return max(0.0, self.delay_fn(attempt))

    def call(self, fn: Callable[..., Any], *args: Any, description: str = "operation", **kwargs: Any) -> Any:
        """
        Call `fn` until it succeeds or the attempt budget runs out.

        Args:
            fn: Callable to invoke
            description: Label used in log events
            *args, **kwargs: Passed through to `fn`

        Returns:
            Whatever `fn` returns

        Raises:
            The last exception raised by `fn`, or the first one that
            `retry_on` rejects
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except self.exceptions as e:
                if not self.retry_on(e):
                    logger.warning(
                        "Non-retryable failure",
                        operation=description,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        "Retry budget exhausted",
                        operation=description,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt failed, retrying",
                    operation=description,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_ms=int(delay * 1000),
                    error=str(e),
                )
                self.sleep(delay)
