"""Domain Event definitions.

Represents significant occurrences within the domain that other parts
of the system might react to (rate-limit waits, retries, token changes).
"""

from .api_events import (
    DomainEvent,
    EventListener,
    ApiCallDeferred,
    RetryScheduled,
    TokenAcquired,
    TokenRefreshFallback,
    dispatch_event,
)

__all__ = [
    "DomainEvent",
    "EventListener",
    "ApiCallDeferred",
    "RetryScheduled",
    "TokenAcquired",
    "TokenRefreshFallback",
    "dispatch_event",
]
