"""Интерфейс диалекта (encode/decode/stream frame) и общий результат разбора фрейма."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chatbridge.services.errors import CanonicalError
from chatbridge.types import ChatRequest, ChatResponse, Dialect, Provider, StreamDelta


@dataclass(frozen=True)
class FrameOutcome:
    """Что дал один SSE-фрейм: дельты, признак конца стрима или ошибку."""

    deltas: tuple[StreamDelta, ...] = ()
    done: bool = False
    error: CanonicalError | None = None


class DialectCodec:
    """Базовый интерфейс диалекта."""

    dialect: Dialect

    def build_payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    def parse_response(self, data: Any, provider: Provider) -> ChatResponse:
        raise NotImplementedError

    def error_message(self, data: Any) -> str | None:
        raise NotImplementedError

    def parse_frame(self, event: str | None, data: str, provider: Provider) -> FrameOutcome:
        raise NotImplementedError
