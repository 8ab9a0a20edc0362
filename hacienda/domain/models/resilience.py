"""Value Objects for the API Resilience context."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RateLimiterOptions:
    """Sliding window admission settings (conservative default: 10 req/s)."""
    max_requests: int = 10
    window_seconds: float = 1.0


@dataclass(frozen=True)
class RetryOptions:
    """Retry backoff configuration.

    Total attempts are ``max_retries + 1``. The delay before retry ``n``
    is ``initial_delay * backoff_multiplier ** (n - 1)``, capped at
    ``max_delay`` when it is set.
    """
    max_retries: int = 2
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: Optional[float] = 8.0


@dataclass(frozen=True)
class ErrorClassification:
    """How the retry layer sees an error: its kind and optional HTTP status."""
    kind: str  # 'network', 'http' or 'other'
    status_code: Optional[int] = None
