import json

import pytest

from chatbridge.decoder import decode, parse_retry_after
from chatbridge.services.errors import CanonicalError, ErrorKind
from chatbridge.types import Dialect, FinishReason, Provider, Role

OK_BODY = {
    "id": "chatcmpl-1",
    "model": "m",
    "choices": [
        {"index": 0, "message": {"role": "assistant", "content": "hello world"}, "finish_reason": "stop"},
        {"index": 1, "message": {"role": "assistant", "content": "second"}, "finish_reason": "length"},
    ],
}


def _decode(status: int, body, headers=None, dialect=Dialect.OPENAI):
    raw = json.dumps(body).encode() if isinstance(body, (dict, list)) else body
    return decode(status, raw, dialect, Provider.OPENAI, headers)


def _error(status: int, body, headers=None, dialect=Dialect.OPENAI) -> CanonicalError:
    with pytest.raises(CanonicalError) as exc:
        _decode(status, body, headers, dialect)
    return exc.value


def test_success_keeps_choice_order() -> None:
    resp = _decode(200, OK_BODY)
    assert [c.message.content for c in resp.choices] == ["hello world", "second"]
    assert resp.choices[0].finish_reason is FinishReason.STOP
    assert resp.choices[1].finish_reason is FinishReason.LENGTH
    assert resp.choices[0].message.role is Role.ASSISTANT
    assert resp.id == "chatcmpl-1"
    assert resp.provider is Provider.OPENAI


def test_null_content_and_tool_calls_finish_reason() -> None:
    body = {"choices": [{"message": {"role": "assistant", "content": None}, "finish_reason": "tool_calls"}]}
    resp = _decode(200, body)
    assert resp.content == ""
    assert resp.choices[0].finish_reason is FinishReason.TOOL_CALL


def test_unknown_finish_reason() -> None:
    body = {"choices": [{"message": {"role": "assistant", "content": "x"}, "finish_reason": "weird"}]}
    assert _decode(200, body).choices[0].finish_reason is FinishReason.UNKNOWN


def test_empty_choices_is_decode_fault() -> None:
    assert _error(200, {"choices": []}).kind is ErrorKind.DECODE_FAULT
    assert _error(200, {"id": "x"}).kind is ErrorKind.DECODE_FAULT


def test_choice_without_message_is_decode_fault() -> None:
    assert _error(200, {"choices": [{"text": "legacy"}]}).kind is ErrorKind.DECODE_FAULT
    assert _error(200, {"choices": ["oops"]}).kind is ErrorKind.DECODE_FAULT


def test_invalid_json_is_decode_fault() -> None:
    assert _error(200, b"<html>oops</html>").kind is ErrorKind.DECODE_FAULT
    assert _error(200, b"[1, 2]").kind is ErrorKind.DECODE_FAULT


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failure(status: int) -> None:
    err = _error(status, {"error": {"message": "Invalid API key"}})
    assert err.kind is ErrorKind.AUTH_FAILURE
    assert err.status_code == status
    assert err.provider is Provider.OPENAI


def test_rate_limited_with_retry_after() -> None:
    err = _error(429, {"error": {"message": "slow down"}}, headers={"Retry-After": "30"})
    assert err.kind is ErrorKind.RATE_LIMITED
    assert err.retry_after == 30.0


def test_rate_limited_without_header() -> None:
    err = _error(429, b"")
    assert err.kind is ErrorKind.RATE_LIMITED
    assert err.retry_after is None


def test_retry_after_variants() -> None:
    assert parse_retry_after({"retry-after-ms": "1500"}) == 1.5
    assert parse_retry_after({"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"}) == 0.0
    assert parse_retry_after({"retry-after": "soon"}) is None
    assert parse_retry_after(None) is None
    assert parse_retry_after({"Retry-After": "inf"}) is None
    assert parse_retry_after({"Retry-After": "1e400"}) is None
    assert parse_retry_after({"retry-after-ms": "nan", "Retry-After": "2"}) == 2.0


def test_bad_request_message_from_error_field() -> None:
    err = _error(400, {"error": {"message": "temperature must be <= 2", "type": "invalid_request_error"}})
    assert err.kind is ErrorKind.BAD_REQUEST
    assert err.message == "temperature must be <= 2"


def test_bad_request_detail_and_raw_body() -> None:
    assert _error(422, {"detail": "model not found"}).message == "model not found"
    assert _error(404, b"Not Found").message == "Not Found"


@pytest.mark.parametrize("status", [500, 502, 503, 529])
def test_provider_fault(status: int) -> None:
    assert _error(status, b"upstream exploded").kind is ErrorKind.PROVIDER_FAULT


def test_redirect_is_unknown() -> None:
    assert _error(302, b"").kind is ErrorKind.UNKNOWN


def test_anthropic_success_and_stop_reason() -> None:
    body = {
        "id": "msg_1",
        "model": "claude",
        "content": [{"type": "text", "text": "hello "}, {"type": "text", "text": "world"}],
        "stop_reason": "end_turn",
    }
    resp = _decode(200, body, dialect=Dialect.ANTHROPIC)
    assert resp.content == "hello world"
    assert resp.choices[0].finish_reason is FinishReason.STOP


def test_anthropic_error_message() -> None:
    body = {"type": "error", "error": {"type": "invalid_request_error", "message": "bad max_tokens"}}
    err = _error(400, body, dialect=Dialect.ANTHROPIC)
    assert err.kind is ErrorKind.BAD_REQUEST
    assert err.message == "bad max_tokens"


def test_anthropic_missing_content_is_decode_fault() -> None:
    assert _error(200, {"id": "msg"}, dialect=Dialect.ANTHROPIC).kind is ErrorKind.DECODE_FAULT


def test_http_date_without_zone_is_utc(monkeypatch) -> None:
    # 07:28:00 UTC того же дня, "сейчас" на 10 секунд раньше.
    monkeypatch.setattr("chatbridge.decoder.time.time", lambda: 1445412470.0)
    assert parse_retry_after({"Retry-After": "Wed, 21 Oct 2015 07:28:00 -0000"}) == 10.0


@pytest.mark.parametrize(
    "status, kind", [(200, ErrorKind.DECODE_FAULT), (500, ErrorKind.PROVIDER_FAULT)]
)
def test_deeply_nested_body_is_canonical(status: int, kind: ErrorKind) -> None:
    err = _error(status, b"[" * 200000)
    assert err.kind is kind
    assert err.status_code == status
