"""
Retry utilities with backoff for upstream API calls.

The loop is synchronous and explicit so the attempt bound is easy to reason
about: the caller supplies a predicate that classifies errors as retryable and
a function that picks the delay before the next attempt.
"""
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

from shopsync.utils.logger import log

T = TypeVar("T")


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    delays: List[float] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        if delay:
            self.total_delay_seconds += delay
            self.delays.append(delay)
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        """Mark the operation as successful."""
        self.success = True

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/storage."""
        return {
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "success": self.success,
            "last_error": self.last_error,
            "errors": self.errors[:5]  # Cap at 5 errors
        }


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add randomness to prevent thundering herd

    Returns:
        Delay in seconds
    """
    # Exponential backoff: base_delay * (exponential_base ^ (attempt - 1))
    delay = base_delay * (exponential_base ** (attempt - 1))

    # Cap at max_delay
    delay = min(delay, max_delay)

    # Add jitter (0-25% of delay)
    if jitter:
        jitter_amount = delay * random.uniform(0, 0.25)
        delay += jitter_amount

    return delay


def call_with_retry(
    func: Callable[[], T],
    max_attempts: int,
    is_retryable: Callable[[Exception], bool],
    delay_for: Callable[[int, Exception], float],
    sleep: Callable[[float], None] = time.sleep,
    stats: Optional[RetryStats] = None,
    label: str = "operation",
) -> T:
    """
    Call ``func`` until it succeeds, a non-retryable error is raised, or
    ``max_attempts`` attempts have been made.

    Args:
        func: Zero-argument callable performing one attempt
        max_attempts: Total attempts including the first one (>= 1)
        is_retryable: Classifies an exception as transient
        delay_for: Returns the wait before the next attempt (attempt, error)
        sleep: Blocking sleep used between attempts
        stats: Optional RetryStats to fill in
        label: Name used in log lines

    Returns:
        Whatever ``func`` returns

    Raises:
        The last exception raised by ``func``
    """
    stats = stats if stats is not None else RetryStats()
    max_attempts = max(max_attempts, 1)

    for attempt in range(1, max_attempts + 1):
        try:
            result = func()
        except Exception as e:
            if attempt >= max_attempts or not is_retryable(e):
                stats.record_attempt(error=e)
                log.error(f"{label} failed after {attempt} attempt(s): {e}")
                raise

            delay = max(delay_for(attempt, e), 0.0)
            stats.record_attempt(error=e, delay=delay)

            log.warning(
                f"{label} attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )

            sleep(delay)
            continue

        stats.record_attempt()
        stats.mark_success()

        if attempt > 1:
            log.info(
                f"{label} succeeded on attempt {attempt} "
                f"after {stats.total_delay_seconds:.1f}s total delay"
            )

        return result

    # max_attempts >= 1 guarantees the loop returns or raises
    raise RuntimeError("Retry exhausted")
