import json

import pytest

from chatbridge.encoder import encode
from chatbridge.services.errors import EncodeError
from chatbridge.types import ChatRequest, Dialect, GenerationParams, Message


def _request(**params) -> ChatRequest:
    return ChatRequest(
        model="meta-llama/Llama-3.3-70B-Instruct",
        messages=(
            Message.from_str("system", "You are a helpful assistant."),
            Message.from_str("user", "Привет"),
            Message.from_str("assistant", "Hi!"),
            Message.from_str("user", "Say 'hello world'."),
        ),
        params=GenerationParams(**params),
    )


def test_openai_body_keeps_model_and_message_order() -> None:
    req = _request()
    enc = encode(req, Dialect.OPENAI)
    body = json.loads(enc.body)
    assert body["model"] == req.model
    assert body["messages"] == [m.to_dict() for m in req.messages]
    assert set(body) == {"model", "messages"}
    assert enc.headers["Content-Type"] == "application/json"
    assert "Authorization" not in enc.headers


def test_openai_params_flattened_at_top_level() -> None:
    enc = encode(_request(temperature=0.2, max_tokens=64, stop=("END",), other={"user": "u1"}),
                 Dialect.OPENAI)
    body = json.loads(enc.body)
    assert body["temperature"] == 0.2
    assert body["max_tokens"] == 64
    assert body["stop"] == ["END"]
    assert body["user"] == "u1"


def test_out_of_range_params_are_passed_through() -> None:
    # Границы проверяет провайдер (ответит 400), а не мы.
    body = json.loads(encode(_request(temperature=7.5), Dialect.OPENAI).body)
    assert body["temperature"] == 7.5


def test_stream_flag_and_accept_header() -> None:
    enc = encode(_request(), Dialect.OPENAI, stream=True)
    assert json.loads(enc.body)["stream"] is True
    assert enc.headers["Accept"] == "text/event-stream"


def test_anthropic_moves_system_prompt_and_sets_max_tokens() -> None:
    body = json.loads(encode(_request(stop=("x",), seed=1), Dialect.ANTHROPIC).body)
    assert body["system"] == "You are a helpful assistant."
    assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
    assert body["max_tokens"] == 1024
    assert body["stop_sequences"] == ["x"]
    assert "seed" not in body


def test_non_ascii_content_is_utf8() -> None:
    enc = encode(_request(), Dialect.OPENAI)
    assert "Привет".encode() in enc.body


def test_encode_rejects_request_that_bypassed_constructor() -> None:
    req = object.__new__(ChatRequest)
    object.__setattr__(req, "model", "m")
    object.__setattr__(req, "messages", ())
    object.__setattr__(req, "params", GenerationParams())
    with pytest.raises(EncodeError):
        encode(req, Dialect.OPENAI)


def test_unserializable_extra_param_is_encode_error() -> None:
    with pytest.raises(EncodeError):
        encode(_request(other={"x": object()}), Dialect.OPENAI)
