"""Anthropic Messages API (`/v1/messages`): свой формат запроса, ответа и SSE-событий."""

from __future__ import annotations

import json
from typing import Any

from chatbridge.providers.base import DialectCodec, FrameOutcome
from chatbridge.services.errors import CanonicalError, ErrorKind
from chatbridge.types import (
    ChatRequest,
    ChatResponse,
    Choice,
    Dialect,
    FinishReason,
    Message,
    Provider,
    Role,
    StreamDelta,
)

# max_tokens у Anthropic обязателен.
DEFAULT_MAX_TOKENS = 1024

_FINISH_REASONS: dict[str, FinishReason] = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALL,
    "refusal": FinishReason.CONTENT_FILTER,
}

_ERROR_KINDS: dict[str, ErrorKind] = {
    "authentication_error": ErrorKind.AUTH_FAILURE,
    "permission_error": ErrorKind.AUTH_FAILURE,
    "rate_limit_error": ErrorKind.RATE_LIMITED,
    "invalid_request_error": ErrorKind.BAD_REQUEST,
    "not_found_error": ErrorKind.BAD_REQUEST,
    "request_too_large": ErrorKind.BAD_REQUEST,
    "api_error": ErrorKind.PROVIDER_FAULT,
    "overloaded_error": ErrorKind.PROVIDER_FAULT,
}


def map_finish_reason(value: Any) -> FinishReason:
    if not isinstance(value, str):
        return FinishReason.UNKNOWN
    return _FINISH_REASONS.get(value, FinishReason.UNKNOWN)


def _decode_fault(message: str, provider: Provider) -> CanonicalError:
    return CanonicalError(ErrorKind.DECODE_FAULT, message, provider=provider)


class AnthropicCodec(DialectCodec):
    dialect = Dialect.ANTHROPIC

    def build_payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        system_parts = [m.content for m in request.messages if m.role == Role.SYSTEM]
        params = request.params
        payload: dict[str, Any] = {"model": request.model}
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        payload["messages"] = [m.to_dict() for m in request.messages if m.role != Role.SYSTEM]
        payload["max_tokens"] = (
            params.max_tokens if params.max_tokens is not None else DEFAULT_MAX_TOKENS
        )
        if params.temperature is not None:
            payload["temperature"] = params.temperature
        if params.top_p is not None:
            payload["top_p"] = params.top_p
        if params.stop is not None:
            payload["stop_sequences"] = list(params.stop)
        if stream:
            payload["stream"] = True
        if params.other:
            payload.update(params.other)
        return payload

    def parse_response(self, data: Any, provider: Provider) -> ChatResponse:
        if not isinstance(data, dict):
            raise _decode_fault("Ответ не является JSON-объектом", provider)
        if data.get("type") == "error":
            raise self._error_from(data, provider)

        blocks = data.get("content")
        if not isinstance(blocks, list) or not blocks:
            raise CanonicalError(
                ErrorKind.DECODE_FAULT,
                "Успешный ответ без content",
                provider=provider,
                status_code=200,
            )
        text = "".join(
            b["text"]
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
        )
        choice = Choice(
            index=0,
            message=Message(role=Role.ASSISTANT, content=text),
            finish_reason=map_finish_reason(data.get("stop_reason")),
        )
        return ChatResponse(
            choices=(choice,),
            provider=provider,
            id=data.get("id") if isinstance(data.get("id"), str) else None,
            model=data.get("model") if isinstance(data.get("model"), str) else None,
        )

    def error_message(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
        return None

    def _error_from(self, data: dict, provider: Provider) -> CanonicalError:
        err = data.get("error")
        err_type = err.get("type") if isinstance(err, dict) else None
        return CanonicalError(
            _ERROR_KINDS.get(err_type, ErrorKind.UNKNOWN),
            self.error_message(data) or "Ошибка провайдера",
            provider=provider,
        )

    def parse_frame(self, event: str | None, data: str, provider: Provider) -> FrameOutcome:
        try:
            payload = json.loads(data)
        except (ValueError, RecursionError):
            return FrameOutcome(error=_decode_fault("Битый JSON во фрейме стрима", provider))
        if not isinstance(payload, dict):
            return FrameOutcome(error=_decode_fault("Фрейм стрима не JSON-объект", provider))

        kind = event or payload.get("type")
        if kind == "message_stop":
            return FrameOutcome(done=True)
        if kind == "error":
            return FrameOutcome(error=self._error_from(payload, provider))
        if kind == "message_start":
            return FrameOutcome(deltas=(StreamDelta(content="", role=Role.ASSISTANT),))
        if kind == "content_block_delta":
            delta = payload.get("delta")
            if not isinstance(delta, dict):
                return FrameOutcome(error=_decode_fault("content_block_delta без delta", provider))
            text = delta.get("text") if delta.get("type") == "text_delta" else ""
            if not isinstance(text, str):
                return FrameOutcome(error=_decode_fault("text_delta без текста", provider))
            return FrameOutcome(deltas=(StreamDelta(content=text),))
        if kind == "message_delta":
            delta = payload.get("delta")
            stop_reason = delta.get("stop_reason") if isinstance(delta, dict) else None
            return FrameOutcome(
                deltas=(
                    StreamDelta(
                        content="",
                        finish_reason=(
                            map_finish_reason(stop_reason) if stop_reason is not None else None
                        ),
                    ),
                )
            )
        # ping, content_block_start/stop и новые типы событий: keep-alive.
        return FrameOutcome(deltas=(StreamDelta(content=""),))
