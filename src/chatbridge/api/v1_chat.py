"""Эндпоинт `/v1/chat/completions`: OpenAI-shaped вход/выход поверх любого провайдера."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Iterator
from functools import lru_cache
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, StreamingResponse

from chatbridge.client import chat_completion, stream_chat_completion
from chatbridge.credentials import CredentialStore, load_default_store
from chatbridge.infrastructure.transport import HttpxTransport, Transport
from chatbridge.services.errors import (
    CanonicalError,
    ErrorKind,
    error_payload,
    public_status,
)
from chatbridge.settings import get_settings
from chatbridge.streaming import ChatStream
from chatbridge.types import (
    ChatRequest,
    ChatResponse,
    FinishReason,
    GenerationParams,
    Message,
    Provider,
    StreamDelta,
)

router = APIRouter()
log = structlog.get_logger()

_PARAM_FIELDS = (
    "temperature",
    "max_tokens",
    "top_p",
    "stop",
    "seed",
    "presence_penalty",
    "frequency_penalty",
)
_RESERVED = {"model", "messages", "stream", *_PARAM_FIELDS}


@lru_cache(maxsize=1)
def get_store() -> CredentialStore:
    return load_default_store()


@lru_cache(maxsize=1)
def get_transport() -> Transport:
    return HttpxTransport()


def _bad_request(message: str) -> JSONResponse:
    err = CanonicalError(ErrorKind.BAD_REQUEST, message)
    return JSONResponse(status_code=400, content=error_payload(err))


def _parse_request(payload: dict, default_model: str) -> ChatRequest:
    """OpenAI-shaped JSON -> `ChatRequest` (ValueError на мусор)."""
    raw_messages = payload.get("messages")
    if not isinstance(raw_messages, list):
        raise ValueError("messages должен быть списком")
    messages = []
    for i, m in enumerate(raw_messages):
        if not isinstance(m, dict) or not isinstance(m.get("content"), str):
            raise ValueError(f"messages[{i}]: нужны role и строковый content")
        messages.append(Message.from_str(str(m.get("role")), m["content"]))

    params: dict[str, Any] = {k: payload[k] for k in _PARAM_FIELDS if payload.get(k) is not None}
    stop = params.get("stop")
    if isinstance(stop, str):
        params["stop"] = (stop,)
    elif stop is not None:
        if not isinstance(stop, list) or not all(isinstance(s, str) for s in stop):
            raise ValueError("stop должен быть строкой или списком строк")
        params["stop"] = tuple(stop)
    other = {k: v for k, v in payload.items() if k not in _RESERVED}
    return ChatRequest(
        model=str(payload.get("model") or default_model),
        messages=tuple(messages),
        params=GenerationParams(**params, other=other or None),
    )


def _finish(value: FinishReason | None) -> str | None:
    if value is None:
        return None
    return "tool_calls" if value == FinishReason.TOOL_CALL else value.value


def _response_json(resp: ChatResponse, model: str) -> dict:
    return {
        "id": resp.id or f"chatcmpl-{uuid.uuid4().hex}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": resp.model or model,
        "choices": [
            {
                "index": c.index,
                "message": c.message.to_dict(),
                "finish_reason": _finish(c.finish_reason),
            }
            for c in resp.choices
        ],
        "meta": {"provider": resp.provider.value},
    }


def _chunk_json(delta: StreamDelta, chunk_id: str, model: str) -> dict:
    body: dict[str, Any] = {"content": delta.content}
    if delta.role is not None:
        body["role"] = delta.role.value
    return {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {"index": delta.index, "delta": body, "finish_reason": _finish(delta.finish_reason)}
        ],
    }


def _sse(data: dict | str) -> bytes:
    text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    return f"data: {text}\n\n".encode()


def _relay(stream: ChatStream, model: str) -> Iterator[bytes]:
    chunk_id = f"chatcmpl-{uuid.uuid4().hex}"
    try:
        for delta in stream:
            if delta.is_final:
                yield _sse("[DONE]")
                return
            yield _sse(_chunk_json(delta, chunk_id, model))
    except CanonicalError as e:
        # Заголовки уже ушли со статусом 200: ошибку отдаём событием, [DONE] не шлём.
        yield _sse(error_payload(e))
    finally:
        stream.close()


@router.post("/chat/completions")
def chat_completions(
    payload: dict,
    x_provider: str | None = Header(default=None, alias="X-Provider"),
    store: CredentialStore = Depends(get_store),
    transport: Transport = Depends(get_transport),
) -> Any:
    settings = get_settings()
    try:
        provider = Provider.parse(x_provider or settings.default_provider)
        request = _parse_request(payload, settings.default_model)
    except ValueError as e:
        return _bad_request(str(e))

    credential = store.lookup(provider)
    if credential is None:
        log.warning("provider_not_configured", provider=provider.value)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "provider_not_configured",
                    "message": "Провайдер не настроен",
                    "type": "gateway_error",
                }
            },
        )

    try:
        if payload.get("stream"):
            stream = stream_chat_completion(provider, credential, request, transport=transport)
            return StreamingResponse(
                _relay(stream, request.model), media_type="text/event-stream"
            )
        resp = chat_completion(provider, credential, request, transport=transport)
    except CanonicalError as e:
        return JSONResponse(status_code=public_status(e), content=error_payload(e))
    return _response_json(resp, request.model)
