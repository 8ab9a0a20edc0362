from hacienda.domain.events import ApiCallDeferred, RetryScheduled, TokenRefreshFallback, dispatch_event


def test_dispatch_event_logs_and_notifies_listener(mocker):
    mock_logger = mocker.patch("hacienda.domain.events.api_events.logger")
    listener = mocker.MagicMock()
    event = RetryScheduled(attempt_number=1, delay_seconds=1.0, error_type="ApiError", status_code=502)

    dispatch_event(event, listener)

    listener.assert_called_once_with(event)
    mock_logger.debug.assert_called_once()
    assert "RetryScheduled" in mock_logger.debug.call_args.args[0]


def test_dispatch_event_without_listener(mocker):
    mock_logger = mocker.patch("hacienda.domain.events.api_events.logger")

    dispatch_event(ApiCallDeferred(wait_time_seconds=0.5))

    mock_logger.debug.assert_called_once()


def test_events_carry_a_timestamp():
    event = TokenRefreshFallback(reason="Token request failed with status 400")
    assert event.timestamp > 0
