"""Domain models for document submission, status polling and HTTP results."""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from .common import HaciendaStatus, StatusResponse

# A status may be a value outside the known enum; it is then kept as a string.
StatusValue = Union[HaciendaStatus, str]


@dataclass(frozen=True)
class HttpResponse:
    """A decoded HTTP response."""
    status: int
    headers: Mapping[str, str]
    data: Any = None


@dataclass(frozen=True)
class SubmissionResponse:
    """Result of POST /recepcion (HTTP 201/202)."""
    status: int
    location: Optional[str] = None


@dataclass(frozen=True)
class ParsedStatusResponse:
    """Status response with the base64 response XML already decoded."""
    clave: str
    status: StatusValue
    date: Optional[str] = None
    response_xml: Optional[str] = None
    raw: StatusResponse = field(default_factory=dict, repr=False)  # type: ignore[assignment]


PollCallback = Callable[[ParsedStatusResponse, int], None]


@dataclass(frozen=True)
class SubmitAndWaitOptions:
    """Polling configuration for submit_and_wait."""
    poll_interval: float = 3.0  # Seconds between polls
    timeout: float = 60.0       # Hard deadline for the polling phase, in seconds
    on_poll: Optional[PollCallback] = None


@dataclass(frozen=True)
class SubmitAndWaitResult:
    """Final outcome of one submit-and-wait run."""
    accepted: bool
    status: StatusValue
    clave: str
    submission_status: int
    poll_attempts: int
    date: Optional[str] = None
    response_xml: Optional[str] = None
    rejection_reason: Optional[str] = None
