"""Request Encoder: канонический `ChatRequest` -> байты + заголовки диалекта."""

from __future__ import annotations

import json
from dataclasses import dataclass

import structlog

from chatbridge.providers.factory import get_codec
from chatbridge.services.errors import EncodeError
from chatbridge.services.redaction import redact_chat_payload
from chatbridge.types import ChatRequest, Dialect, Message

log = structlog.get_logger()


@dataclass(frozen=True)
class EncodedRequest:
    body: bytes
    headers: dict[str, str]


def _check_invariants(request: ChatRequest) -> None:
    # Конструктор ChatRequest уже проверяет это; сюда попадаем только через обход конструктора.
    if not isinstance(request, ChatRequest):
        raise EncodeError(f"Ожидался ChatRequest, получен {type(request).__name__}")
    if not isinstance(request.model, str) or not request.model.strip():
        raise EncodeError("Пустой model")
    if not request.messages:
        raise EncodeError("Пустой список messages")
    for i, m in enumerate(request.messages):
        if not isinstance(m, Message) or not isinstance(m.content, str):
            raise EncodeError(f"messages[{i}] не является Message")


def encode(request: ChatRequest, dialect: Dialect, stream: bool = False) -> EncodedRequest:
    """Собирает тело запроса и заголовки (без авторизации) для диалекта."""
    _check_invariants(request)
    payload = get_codec(dialect).build_payload(request, stream)
    try:
        body = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        # Чаще всего несериализуемое значение в GenerationParams.other.
        raise EncodeError(f"Не удалось сериализовать запрос: {e}") from e

    headers = {"Content-Type": "application/json"}
    if stream:
        headers["Accept"] = "text/event-stream"

    log.debug(
        "chat_request_encoded",
        dialect=dialect.value,
        stream=stream,
        payload=redact_chat_payload(payload),
    )
    return EncodedRequest(body=body, headers=headers)
