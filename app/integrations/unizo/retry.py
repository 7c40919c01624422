"""
Retry policy for outbound Unizo calls.

The policy is a plain value object so it can be exercised without any
network I/O: the client asks it whether a failure is worth another attempt
and how long to wait first.
"""

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

from .exceptions import RETRYABLE_STATUS_CODES


def exponential_backoff(base_delay: float) -> Callable[[int], float]:
    """Delay before retry ``attempt`` (1-based) is ``2**attempt * base_delay``."""

    def backoff(attempt: int) -> float:
        return (2 ** attempt) * base_delay

    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    ``max_retries`` counts retries after the initial request, so a call makes
    at most ``max_retries + 1`` requests.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    retryable_statuses: FrozenSet[int] = RETRYABLE_STATUS_CODES
    backoff: Optional[Callable[[int], float]] = field(default=None, compare=False)

    def is_retryable_status(self, status_code: Optional[int]) -> bool:
        return status_code in self.retryable_statuses

    def delay_for(self, attempt: int) -> float:
        if self.backoff is not None:
            return self.backoff(attempt)
        return exponential_backoff(self.base_delay)(attempt)

    def should_retry(self, state: "RetryState") -> bool:
        return state.attempt < self.max_retries

    @classmethod
    def no_retries(cls) -> "RetryPolicy":
        return cls(max_retries=0)


@dataclass
class RetryState:
    """Per-call retry bookkeeping; discarded once the call resolves."""
    attempt: int = 0
    last_status: Optional[int] = None
    last_error: Optional[Exception] = None

    def record(self, status: Optional[int] = None, error: Optional[Exception] = None) -> None:
        self.last_status = status
        self.last_error = error
