"""Service for executing API calls with automatic retries.

Implements exponential backoff for transient failures: network errors that
never produced an HTTP status, and 5xx server errors. Client errors (4xx)
are permanent and never retried; a 409 in particular means the document
was already submitted.

Classification is kept apart from execution: ``classify_error`` turns an
exception into an ``ErrorClassification`` and ``should_retry`` is a pure
decision over that and the attempt count.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from hacienda.core.exceptions import ApiError
from hacienda.domain.events import EventListener, RetryScheduled, dispatch_event
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.resilience import ErrorClassification, RetryOptions
from hacienda.infrastructure.http.error_codes import is_retryable_status
from hacienda.infrastructure.resilience.clock import SystemClock

logger = logging.getLogger(__name__)

T = TypeVar("T")

NETWORK = "network"
HTTP = "http"
OTHER = "other"


def classify_error(error: BaseException) -> ErrorClassification:
    """Maps an exception to the kind the retry decision understands."""
    if isinstance(error, ApiError):
        if error.status_code is None:
            return ErrorClassification(kind=NETWORK)
        return ErrorClassification(kind=HTTP, status_code=error.status_code)
    if isinstance(error, httpx.TransportError):
        return ErrorClassification(kind=NETWORK)
    return ErrorClassification(kind=OTHER)


def is_transient(error: BaseException) -> bool:
    """True for failures worth another attempt: no HTTP status at all, or a 5xx."""
    classification = classify_error(error)
    if classification.kind == NETWORK:
        return True
    if classification.kind == HTTP and classification.status_code is not None:
        return is_retryable_status(classification.status_code)
    return False


def should_retry(error: BaseException, attempt: int, max_retries: int = RetryOptions.max_retries) -> bool:
    """Decides whether another attempt should follow a failure.

    Args:
        error: The exception raised by attempt number ``attempt``.
        attempt: 1-based count of attempts made so far.
        max_retries: Retries allowed after the first attempt.

    Returns:
        True only for network failures or 5xx responses while retries remain.
    """
    if attempt > max_retries:
        return False
    return is_transient(error)


def compute_delay(attempt: int, options: RetryOptions) -> float:
    """Backoff in seconds to wait after attempt ``attempt`` fails."""
    delay = options.initial_delay * (options.backoff_multiplier ** (attempt - 1))
    if options.max_delay is not None:
        delay = min(delay, options.max_delay)
    return delay


class RetryPolicy:
    """Runs an async operation, retrying transient failures with backoff."""

    def __init__(
        self,
        options: Optional[RetryOptions] = None,
        clock: Optional[Clock] = None,
        on_event: Optional[EventListener] = None,
    ):
        """Initializes the RetryPolicy.

        Args:
            options: Backoff configuration; defaults to RetryOptions().
            clock: Time source used for the backoff sleeps.
            on_event: Optional listener for RetryScheduled events.
        """
        self.options = options or RetryOptions()
        self._clock = clock or SystemClock()
        self._on_event = on_event
        logger.debug(
            f"RetryPolicy initialized: max_retries={self.options.max_retries}, "
            f"initial_delay={self.options.initial_delay}s, factor={self.options.backoff_multiplier}"
        )

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return should_retry(error, attempt, self.options.max_retries)

    async def execute(self, operation: Callable[[], Awaitable[T]], *, description: str = "operation") -> T:
        """Executes ``operation`` with retries.

        Args:
            operation: Zero-argument coroutine function; called once per attempt.
            description: Label used in log messages, e.g. 'POST /recepcion'.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The last error, unchanged, once retries are exhausted
                or as soon as a non-retryable error occurs.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not self.should_retry(e, attempt):
                    if is_transient(e):
                        logger.error(f"Max retries ({self.options.max_retries}) reached for {description}. Last error: {e}")
                    raise
                delay = compute_delay(attempt, self.options)
                classification = classify_error(e)
                logger.warning(
                    f"Retryable error on {description}, attempt {attempt}/{self.options.max_retries + 1}: "
                    f"{type(e).__name__}. Waiting {delay:.2f}s..."
                )
                dispatch_event(
                    RetryScheduled(
                        attempt_number=attempt,
                        delay_seconds=delay,
                        error_type=type(e).__name__,
                        status_code=classification.status_code,
                    ),
                    self._on_event,
                )
                await self._clock.sleep(delay)
