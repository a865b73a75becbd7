"""OpenAI-compatible диалект (`/v1/chat/completions`): его говорит большинство провайдеров."""

from __future__ import annotations

import json
from typing import Any

from chatbridge.providers.base import DialectCodec, FrameOutcome
from chatbridge.services.errors import CanonicalError, ErrorKind, kind_for_status
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

DONE_MARKER = "[DONE]"

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": FinishReason.STOP,
    "eos": FinishReason.STOP,
    "end_turn": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "max_tokens": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
    "tool_calls": FinishReason.TOOL_CALL,
    "function_call": FinishReason.TOOL_CALL,
    "error": FinishReason.ERROR,
}


def map_finish_reason(value: Any) -> FinishReason:
    if not isinstance(value, str):
        return FinishReason.UNKNOWN
    return _FINISH_REASONS.get(value.lower(), FinishReason.UNKNOWN)


def _role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        # Ответ модели всегда от ассистента, даже если провайдер пишет что-то своё.
        return Role.ASSISTANT


def _text(content: Any) -> str:
    """`content` бывает строкой, `null` (tool calls) или списком частей."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
            elif isinstance(part, str):
                parts.append(part)
        return "".join(parts)
    raise TypeError(f"unexpected content type: {type(content).__name__}")


class OpenAICompatibleCodec(DialectCodec):
    dialect = Dialect.OPENAI

    def build_payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [m.to_dict() for m in request.messages],
        }
        payload.update(request.params.present())
        if stream:
            payload["stream"] = True
        if request.params.other:
            payload.update(request.params.other)
        return payload

    def parse_response(self, data: Any, provider: Provider) -> ChatResponse:
        if not isinstance(data, dict):
            raise CanonicalError(
                ErrorKind.DECODE_FAULT, "Ответ не является JSON-объектом", provider=provider
            )
        raw_choices = data.get("choices")
        if not isinstance(raw_choices, list) or not raw_choices:
            raise CanonicalError(
                ErrorKind.DECODE_FAULT,
                "Успешный ответ без choices",
                provider=provider,
                status_code=200,
            )

        choices = []
        for i, raw in enumerate(raw_choices):
            message = raw.get("message") if isinstance(raw, dict) else None
            if not isinstance(message, dict):
                raise CanonicalError(
                    ErrorKind.DECODE_FAULT,
                    f"choices[{i}] без message",
                    provider=provider,
                    status_code=200,
                )
            try:
                content = _text(message.get("content"))
            except TypeError as e:
                raise CanonicalError(
                    ErrorKind.DECODE_FAULT, f"choices[{i}]: {e}", provider=provider, status_code=200
                ) from e
            index = raw.get("index")
            choices.append(
                Choice(
                    index=index if isinstance(index, int) else i,
                    message=Message(role=_role(message.get("role", "assistant")), content=content),
                    finish_reason=map_finish_reason(raw.get("finish_reason")),
                )
            )

        return ChatResponse(
            choices=tuple(choices),
            provider=provider,
            id=data.get("id") if isinstance(data.get("id"), str) else None,
            model=data.get("model") if isinstance(data.get("model"), str) else None,
        )

    def error_message(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        err = data.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg:
                return msg
            return json.dumps(err, ensure_ascii=False)
        if isinstance(err, str) and err:
            return err
        detail = data.get("detail")
        if isinstance(detail, str) and detail:
            return detail
        if detail is not None:
            return json.dumps(detail, ensure_ascii=False)
        return None

    def parse_frame(self, event: str | None, data: str, provider: Provider) -> FrameOutcome:
        if data.strip() == DONE_MARKER:
            return FrameOutcome(done=True)

        try:
            chunk = json.loads(data)
        except (ValueError, RecursionError):
            return FrameOutcome(
                error=CanonicalError(
                    ErrorKind.DECODE_FAULT, "Битый JSON во фрейме стрима", provider=provider
                )
            )
        if not isinstance(chunk, dict):
            return FrameOutcome(
                error=CanonicalError(
                    ErrorKind.DECODE_FAULT, "Фрейм стрима не JSON-объект", provider=provider
                )
            )

        if chunk.get("error") is not None:
            err = chunk["error"]
            code = err.get("code") if isinstance(err, dict) else None
            kind = kind_for_status(code) if isinstance(code, int) else ErrorKind.PROVIDER_FAULT
            return FrameOutcome(
                error=CanonicalError(
                    kind,
                    self.error_message(chunk) or "Ошибка в стриме",
                    provider=provider,
                )
            )

        raw_choices = chunk.get("choices")
        if raw_choices is None or raw_choices == []:
            # usage-чанк или heartbeat без choices: пустая дельта.
            return FrameOutcome(deltas=(StreamDelta(content=""),))
        if not isinstance(raw_choices, list):
            return FrameOutcome(
                error=CanonicalError(
                    ErrorKind.DECODE_FAULT, "choices во фрейме не список", provider=provider
                )
            )

        deltas = []
        for i, raw in enumerate(raw_choices):
            if not isinstance(raw, dict):
                return FrameOutcome(
                    error=CanonicalError(
                        ErrorKind.DECODE_FAULT, f"choices[{i}] не объект", provider=provider
                    )
                )
            delta = raw.get("delta") or {}
            if not isinstance(delta, dict):
                delta = {}
            try:
                content = _text(delta.get("content"))
            except TypeError as e:
                return FrameOutcome(
                    error=CanonicalError(ErrorKind.DECODE_FAULT, str(e), provider=provider)
                )
            finish = raw.get("finish_reason")
            index = raw.get("index")
            deltas.append(
                StreamDelta(
                    content=content,
                    index=index if isinstance(index, int) else i,
                    role=_role(delta["role"]) if delta.get("role") else None,
                    finish_reason=map_finish_reason(finish) if finish is not None else None,
                )
            )
        return FrameOutcome(deltas=tuple(deltas))
