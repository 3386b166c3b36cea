import json
import threading
import time

import pytest
import requests

from datelens.analysis.testing import FakeResponse, chat_completion_body, ok_response
from datelens.infrastructure.llm import (
    AnalysisCancelledError,
    AuthError,
    CancellationToken,
    CircuitState,
    NetworkError,
    QuotaError,
    RateLimitError,
    RequestTimeoutError,
    ResponseParseError,
    ServiceUnavailableError,
    UnknownAPIError,
    error_from_response,
    parse_chat_completion,
)


def test_payload_shape_and_auth_header(make_client) -> None:
    client, session = make_client([ok_response({"ok": True})])

    assert client.generate_json("Rate this date.") == {"ok": True}

    call = session.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["timeout"] == 30.0
    body = call["json"]
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [{"role": "user", "content": "Rate this date."}]
    assert body["max_tokens"] == 500
    assert body["temperature"] == 0.3
    assert body["response_format"] == {"type": "json_object"}


def test_empty_choices_is_parse_error_without_retry(make_client, clock) -> None:
    client, session = make_client([FakeResponse(200, json.dumps({"choices": []}))])

    with pytest.raises(ResponseParseError):
        client.generate_json("prompt")

    assert len(session.calls) == 1
    assert clock.sleeps == []
    # parse failures happen outside the breaker
    assert client.circuit_breaker.failure_count == 0


def test_rate_limited_then_success(make_client, clock) -> None:
    client, session = make_client([
        FakeResponse(429, "", {"Retry-After": "2"}),
        ok_response({"score": 80}),
    ])

    assert client.generate_json("prompt") == {"score": 80}
    assert len(session.calls) == 2
    assert clock.sleeps == [2.0]


def test_network_errors_exhaust_attempts(make_client, clock) -> None:
    client, session = make_client(default=requests.ConnectionError("refused"))

    with pytest.raises(NetworkError):
        client.generate_json("prompt")

    assert len(session.calls) == 3
    assert clock.sleeps == [1.0, 2.0]
    assert client.circuit_breaker.failure_count == 1


def test_timeout_is_retried(make_client) -> None:
    client, session = make_client([requests.Timeout("slow"), ok_response({"ok": 1})])
    assert client.generate_json("prompt") == {"ok": 1}
    assert len(session.calls) == 2


def test_server_error_is_retried(make_client) -> None:
    client, session = make_client([FakeResponse(503, "busy"), ok_response({"ok": 1})])
    assert client.generate_json("prompt") == {"ok": 1}


def test_auth_error_is_not_retried(make_client, clock) -> None:
    client, session = make_client([FakeResponse(401, "unauthorized")])

    with pytest.raises(AuthError):
        client.generate_json("prompt")

    assert len(session.calls) == 1
    assert clock.sleeps == []


def test_breaker_opens_and_skips_network(make_client) -> None:
    client, session = make_client(default=FakeResponse(401, "unauthorized"), failure_threshold=5)

    for _ in range(5):
        with pytest.raises(AuthError):
            client.generate_json("prompt")
    assert client.circuit_state == CircuitState.OPEN

    with pytest.raises(ServiceUnavailableError):
        client.generate_json("prompt")
    assert len(session.calls) == 5


def test_breaker_recovers_after_timeout(make_client, clock) -> None:
    client, session = make_client(
        [FakeResponse(401, "")] * 5 + [ok_response({"a": 1}), ok_response({"a": 2})],
        failure_threshold=5, recovery_timeout=60.0, success_threshold=2,
    )
    for _ in range(5):
        with pytest.raises(AuthError):
            client.generate_json("prompt")

    clock.advance(60.0)
    assert client.generate_json("prompt") == {"a": 1}
    assert client.circuit_state == CircuitState.HALF_OPEN
    assert client.generate_json("prompt") == {"a": 2}
    assert client.circuit_state == CircuitState.CLOSED


def test_cancel_returns_while_request_in_flight(make_client) -> None:
    token = CancellationToken()
    release = threading.Event()

    def slow_post():
        token.cancel()
        release.wait(5.0)
        return ok_response({"ok": True})

    client, session = make_client([slow_post])
    started = time.monotonic()
    try:
        with pytest.raises(AnalysisCancelledError):
            client.generate_json("prompt", cancel=token)
    finally:
        release.set()

    assert time.monotonic() - started < 2.0
    assert len(session.calls) == 1
    assert client.circuit_breaker.failure_count == 0


def test_attempt_is_bounded_by_wall_clock_timeout(make_client) -> None:
    release = threading.Event()

    def stalled_post():
        release.wait(5.0)
        return ok_response({"ok": True})

    client, session = make_client([stalled_post], max_attempts=1, timeout=0.2)
    started = time.monotonic()
    try:
        with pytest.raises(RequestTimeoutError):
            client.generate_json("prompt")
    finally:
        release.set()

    assert time.monotonic() - started < 2.0
    assert session.calls[0]["timeout"] == 0.2


def test_health_check(make_client) -> None:
    client, _ = make_client([ok_response({"ok": True}), FakeResponse(401, "")])
    assert client.health_check() is True
    assert client.health_check() is False


def test_close_closes_session(make_client) -> None:
    client, session = make_client()
    client.close()
    assert session.closed


@pytest.mark.parametrize("status,headers,expected,retry_after", [
    (401, {}, AuthError, None),
    (402, {}, QuotaError, None),
    (429, {"Retry-After": "7"}, RateLimitError, 7),
    (429, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}, RateLimitError, None),
    (500, {}, NetworkError, None),
    (504, {}, NetworkError, None),
    (418, {}, UnknownAPIError, None),
])
def test_error_from_response(status, headers, expected, retry_after) -> None:
    error = error_from_response(FakeResponse(status, "", headers))
    assert type(error) is expected
    assert error.status_code == status
    assert error.retry_after == retry_after


def test_classification_of_transport_errors() -> None:
    from datelens.infrastructure.llm import classify_exception

    assert isinstance(classify_exception(requests.ConnectTimeout("x")), RequestTimeoutError)
    assert isinstance(classify_exception(requests.ConnectionError("x")), NetworkError)


@pytest.mark.parametrize("body", [
    "",
    "not json",
    json.dumps({"choices": []}),
    json.dumps({"choices": [{"message": {"content": ""}}]}),
    json.dumps({"choices": [{"message": {"content": "{oops"}}]}),
    json.dumps({"choices": [{"message": {"content": "[1, 2]"}}]}),
])
def test_parse_chat_completion_failures(body) -> None:
    with pytest.raises(ResponseParseError):
        parse_chat_completion(body)


def test_parse_chat_completion_double_decodes() -> None:
    payload = {"valence": 0.5, "evidence": ["smiled"]}
    assert parse_chat_completion(chat_completion_body(payload)) == payload
