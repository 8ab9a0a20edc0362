"""Submit-and-poll orchestrator.

Runs the full document lifecycle against the recepcion API:

    submit (POST /recepcion) -> poll (GET /recepcion/{clave}) -> terminal status

The polling phase has a single hard deadline, checked once per iteration
before waiting. An HTTP call already in flight is allowed to finish.
"""

import logging
from typing import Optional

from hacienda.core.exceptions import ApiError, SubmissionTimeoutError
from hacienda.core.services.submission_service import (
    extract_rejection_reason,
    get_status,
    is_terminal_status,
    submit_document,
)
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.common import HaciendaStatus, SubmissionRequest
from hacienda.domain.models.submission import (
    ParsedStatusResponse,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.infrastructure.http.http_client import HttpClient

logger = logging.getLogger(__name__)

# Upper bound for the wait before the first poll.
FIRST_POLL_DELAY_SECONDS = 1.0


async def submit_and_wait(
    http_client: HttpClient,
    request: SubmissionRequest,
    options: Optional[SubmitAndWaitOptions] = None,
    *,
    clock: Optional[Clock] = None,
) -> SubmitAndWaitResult:
    """Submits a document and polls until it is accepted, rejected or errored.

    Args:
        http_client: The authenticated HTTP client.
        request: Ready-to-send payload (comprobanteXml already signed and base64).
        options: Polling interval, timeout and optional on_poll callback.
        clock: Time source; defaults to the HTTP client's clock.

    Returns:
        SubmitAndWaitResult, always with a terminal status.

    Raises:
        DuplicateSubmissionError: The clave was already submitted; no polling happens.
        SubmissionTimeoutError: No terminal status before ``options.timeout``.
        ApiError: A poll failed with anything other than 404.
    """
    options = options or SubmitAndWaitOptions()
    clock = clock or http_client.clock
    clave = request["clave"]

    submission = await submit_document(http_client, request)

    started = clock.now()
    poll_attempts = 0
    last_status: Optional[str] = None

    while True:
        elapsed = clock.now() - started
        if elapsed >= options.timeout:
            logger.error(f"Polling for {clave} timed out after {poll_attempts} attempts")
            raise SubmissionTimeoutError(clave, poll_attempts, options.timeout, last_status)

        # Give the backend a moment before the first poll.
        if poll_attempts == 0:
            await clock.sleep(min(options.poll_interval, FIRST_POLL_DELAY_SECONDS))
        else:
            await clock.sleep(options.poll_interval)

        poll_attempts += 1

        try:
            status_response: ParsedStatusResponse = await get_status(http_client, clave)
        except ApiError as exc:
            if exc.status_code == 404:
                logger.debug(f"Clave {clave} not indexed yet (attempt {poll_attempts})")
                continue
            logger.error(f"Polling {clave} failed on attempt {poll_attempts}: {exc}")
            raise

        last_status = str(status_response.status)
        logger.debug(f"Poll {poll_attempts} for {clave}: {last_status}")

        if options.on_poll is not None:
            options.on_poll(status_response, poll_attempts)

        if not is_terminal_status(status_response.status):
            continue

        accepted = status_response.status == HaciendaStatus.ACEPTADO
        rejection_reason = None
        if not accepted and status_response.response_xml:
            rejection_reason = extract_rejection_reason(status_response.response_xml)

        logger.info(f"Document {clave} reached terminal status '{last_status}' after {poll_attempts} polls")
        return SubmitAndWaitResult(
            accepted=accepted,
            status=status_response.status,
            clave=status_response.clave,
            date=status_response.date,
            response_xml=status_response.response_xml,
            rejection_reason=rejection_reason,
            submission_status=submission.status,
            poll_attempts=poll_attempts,
        )
