import pytest

from chatbridge.types import ChatRequest, ChatResponse, GenerationParams, Message, Provider, Role


def test_message_role_from_string() -> None:
    m = Message.from_str("user", "hi")
    assert m.role is Role.USER
    assert m.to_dict() == {"role": "user", "content": "hi"}


def test_message_unknown_role_rejected() -> None:
    with pytest.raises(ValueError):
        Message.from_str("narrator", "hi")


def test_chat_request_requires_model_and_messages() -> None:
    with pytest.raises(ValueError):
        ChatRequest(model="", messages=(Message.from_str("user", "hi"),))
    with pytest.raises(ValueError):
        ChatRequest(model="m", messages=())


def test_chat_request_build_keeps_order_and_params() -> None:
    msgs = [Message.from_str("system", "s"), Message.from_str("user", "u")]
    req = ChatRequest.build("m", msgs, temperature=0.5)
    assert [m.content for m in req.messages] == ["s", "u"]
    assert req.params.temperature == 0.5


def test_generation_params_present_skips_none() -> None:
    p = GenerationParams(temperature=0.0, stop=("x",))
    assert p.present() == {"temperature": 0.0, "stop": ["x"]}


def test_chat_response_needs_a_choice() -> None:
    with pytest.raises(ValueError):
        ChatResponse(choices=(), provider=Provider.OPENAI)


def test_provider_parse_case_insensitive() -> None:
    assert Provider.parse(" DeepInfra ") is Provider.DEEPINFRA
    with pytest.raises(ValueError, match="Unknown provider"):
        Provider.parse("nope")
