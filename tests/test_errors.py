from statusboard.errors import OutcomeKind, ServiceError, classify, describe_http_error


def test_explicit_failure_is_recoverable():
    outcome = classify({"success": False, "error": "bad key", "stats": {"x": 1}})
    assert outcome.kind is OutcomeKind.RECOVERABLE
    assert (outcome.state, outcome.error, dict(outcome.stats)) == ("offline", "bad key", {})


def test_failure_without_message_gets_default():
    assert classify({"success": False}).error == "Integration returned an error"


def test_raised_error_is_fatal():
    outcome = classify(error=TimeoutError("read timed out"))
    assert outcome.fatal
    assert outcome.error == "TimeoutError: read timed out"


def test_non_mapping_payload_is_fatal():
    assert classify(None).fatal
    assert classify("ok").fatal


def test_success_honours_payload_state():
    assert classify({"success": True}).state == "online"
    assert classify({"status": "warning"}).state == "warning"
    assert classify({"success": True, "status": "offline"}).state == "offline"
    assert classify({"success": True, "status": "bogus"}).state == "online"


def test_success_stats_and_ping():
    outcome = classify({"success": True, "stats": {"queue": 3}, "ping": 42})
    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.stats == {"queue": 3}
    assert outcome.ping == 42.0
    assert classify({"stats": "nope", "ping": True}).stats == {}
    assert classify({"ping": True}).ping is None


def test_http_error_messages():
    assert describe_http_error(401, "Sonarr") == "Authentication failed - check API key"
    assert describe_http_error(502, "Sonarr") == "Connection refused - Sonarr may be offline"
    assert describe_http_error(418, "Sonarr", "I'm a teapot") == "HTTP 418: I'm a teapot"
    assert describe_http_error(418, "Sonarr") == "HTTP 418"


def test_service_error_keeps_status():
    err = ServiceError("nope", 503)
    assert str(err) == "nope"
    assert err.status == 503
