import httpx

from chatbridge.services.errors import (
    CanonicalError,
    ErrorKind,
    error_payload,
    kind_for_status,
    map_transport_exception,
    public_status,
)
from chatbridge.types import Provider


def test_map_transport_exception_timeout() -> None:
    err = map_transport_exception(httpx.ReadTimeout("timeout"), Provider.GROQ)
    assert err.kind is ErrorKind.NETWORK_FAULT
    assert err.provider is Provider.GROQ
    assert public_status(err) == 504


def test_map_transport_exception_connect() -> None:
    err = map_transport_exception(httpx.ConnectError("refused"), Provider.OPENAI)
    assert err.kind is ErrorKind.NETWORK_FAULT


def test_map_transport_exception_unknown() -> None:
    err = map_transport_exception(RuntimeError("boom"), None)
    assert err.kind is ErrorKind.UNKNOWN


def test_kind_for_status() -> None:
    assert kind_for_status(401) is ErrorKind.AUTH_FAILURE
    assert kind_for_status(403) is ErrorKind.AUTH_FAILURE
    assert kind_for_status(429) is ErrorKind.RATE_LIMITED
    assert kind_for_status(418) is ErrorKind.BAD_REQUEST
    assert kind_for_status(503) is ErrorKind.PROVIDER_FAULT
    assert kind_for_status(304) is ErrorKind.UNKNOWN


def test_error_payload_shape() -> None:
    err = CanonicalError(ErrorKind.RATE_LIMITED, "slow down", Provider.OPENAI, retry_after=30.0)
    payload = error_payload(err)
    assert payload == {
        "error": {
            "code": "rate_limited",
            "message": "slow down",
            "type": "rate_limit_error",
            "provider": "openai",
            "retry_after": 30.0,
        }
    }
    assert public_status(err) == 429
    assert "rate_limited" in str(err)
