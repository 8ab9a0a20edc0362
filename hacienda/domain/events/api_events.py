"""Domain Events related to API calls, resilience and the token lifecycle.

Examples include events for when calls are deferred by the rate limiter,
retried after a transient failure, or when tokens are (re)acquired.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

EventListener = Callable[[DomainEvent], None]

# --- Resilience Events ---

@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when a call is deferred due to rate limiting."""
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed API call."""
    attempt_number: int
    delay_seconds: float
    error_type: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

# --- Token Lifecycle Events ---

@dataclass
class TokenAcquired(DomainEvent):
    """Event triggered when the IDP issues a new token pair."""
    grant_type: str  # 'password' or 'refresh_token'
    expires_in: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class TokenRefreshFallback(DomainEvent):
    """Event triggered when a failed refresh falls back to a password grant."""
    reason: str
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent, listener: Optional[EventListener] = None) -> None:
    """Logs an event and hands it to the listener, if one is registered."""
    logger.debug(f"EVENT: {event}")
    if listener is not None:
        listener(event)
