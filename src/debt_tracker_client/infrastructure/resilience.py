"""Retry policy for the request executor.

Usage example:
    from debt_tracker_client.infrastructure.resilience import RetryPolicy

    policy = RetryPolicy(max_attempts=3, base_delay_seconds=1.0)
    policy.compute_delay(2)  # 2.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import override

from ..failures import Failure
from ..protocols import RetryPolicy as RetryPolicyProtocol


@dataclass(frozen=True)
class RetryPolicy(RetryPolicyProtocol):
    """Fixed-attempt retry policy with linear backoff.

    Retryability is a property of the failure kind, never of the call site.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must not be negative.")

    @override
    def should_retry(self, failure: Failure, attempt: int) -> bool:
        return failure.is_retryable and attempt < self.max_attempts

    @override
    def compute_delay(self, attempt: int) -> float:
        """Delay after the failed `attempt`: base, 2 * base, 3 * base, ..."""
        return self.base_delay_seconds * max(1, attempt)
