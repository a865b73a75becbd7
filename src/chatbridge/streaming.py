"""Stream Reassembler: SSE-байты провайдера -> последовательность `StreamDelta`.

Состояния: `streaming` -> `done` (маркер конца стрима) или `errored` (битый
фрейм, ошибка в стриме, обрыв соединения). Из терминального состояния
ничего больше не выходит.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, ExitStack
from enum import StrEnum

import httpx
import structlog

from chatbridge.decoder import decode
from chatbridge.infrastructure.transport import TransportStream
from chatbridge.metrics import errors_total, stream_deltas_total
from chatbridge.providers.base import FrameOutcome
from chatbridge.providers.factory import get_codec
from chatbridge.services.errors import CanonicalError, ErrorKind, map_transport_exception
from chatbridge.types import (
    ChatResponse,
    Choice,
    Dialect,
    FinishReason,
    Message,
    Provider,
    Role,
    StreamDelta,
)

log = structlog.get_logger()

MAX_FRAME_BYTES = 8 * 1024 * 1024


class StreamState(StrEnum):
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"


def _normalize(chunk: bytes) -> bytes:
    return chunk.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def _parse_sse(frame: str) -> tuple[str | None, str | None]:
    """SSE-фрейм -> (event, data). `data` = None, если data-строк не было."""
    event = None
    data_lines: list[str] = []
    for line in frame.split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data_lines.append(value)
        elif name == "event":
            event = value
    if not data_lines:
        return event, None
    return event, "\n".join(data_lines)


class StreamReassembler:
    """Конечный автомат над байтами стрима одного запроса (одноразовый)."""

    def __init__(self, dialect: Dialect, provider: Provider) -> None:
        self.dialect = dialect
        self.provider = provider
        self._codec = get_codec(dialect)
        # Буфер хранит уже нормализованные (`\n`) байты недособранного фрейма.
        self._buf = bytearray()
        # `\r` в конце чанка может оказаться половиной `\r\n` из следующего.
        self._cr = b""
        self.state = StreamState.STREAMING
        self.error: CanonicalError | None = None

    @property
    def terminal(self) -> bool:
        return self.state is not StreamState.STREAMING

    def feed(self, chunk: bytes) -> list[StreamDelta]:
        if self.terminal:
            return []
        chunk = self._cr + chunk
        self._cr = b""
        if chunk.endswith(b"\r"):
            chunk, self._cr = chunk[:-1], b"\r"

        # Граница `\n\n` может начинаться на последнем байте старого буфера.
        pos = max(0, len(self._buf) - 1)
        self._buf += _normalize(chunk)
        frames: list[bytes] = []
        start = 0
        idx = self._buf.find(b"\n\n", pos)
        while idx != -1:
            frames.append(bytes(self._buf[start:idx]))
            start = idx + 2
            idx = self._buf.find(b"\n\n", start)
        del self._buf[:start]

        out: list[StreamDelta] = []
        for frame in frames:
            out.extend(self._handle_frame(frame))
            if self.terminal:
                return out
        if len(self._buf) > MAX_FRAME_BYTES:
            self.fail(
                CanonicalError(
                    ErrorKind.DECODE_FAULT,
                    f"Фрейм стрима длиннее {MAX_FRAME_BYTES} байт",
                    provider=self.provider,
                )
            )
            self._buf.clear()
        return out

    def finish(self) -> list[StreamDelta]:
        """Соединение закрылось. Без маркера конца это обрыв (`network_fault`)."""
        if self.terminal:
            return []
        out: list[StreamDelta] = []
        rest = bytes(self._buf).strip(b"\n")
        self._buf.clear()
        self._cr = b""
        if rest:
            # Последний фрейм без завершающей пустой строки (`data: [DONE]\n`).
            out.extend(self._handle_frame(rest))
        if not self.terminal:
            self.fail(
                CanonicalError(
                    ErrorKind.NETWORK_FAULT,
                    "Стрим оборвался до маркера конца",
                    provider=self.provider,
                )
            )
        return out

    def fail(self, error: CanonicalError) -> None:
        if self.terminal:
            return
        self.state = StreamState.ERRORED
        self.error = error
        errors_total.labels(provider=self.provider.value, error_kind=error.kind.value).inc()
        log.warning("stream_error", **error.log_fields())

    def _handle_frame(self, frame: bytes) -> list[StreamDelta]:
        try:
            text = frame.decode("utf-8")
        except UnicodeDecodeError:
            self.fail(
                CanonicalError(ErrorKind.DECODE_FAULT, "Фрейм не в UTF-8", provider=self.provider)
            )
            return []

        event, data = _parse_sse(text)
        if data is None:
            # Комментарий (`: keep-alive`) или event без data: признак жизни.
            return [StreamDelta(content="")] if text.strip() else []

        outcome: FrameOutcome = self._codec.parse_frame(event, data, self.provider)
        if outcome.error is not None:
            self.fail(outcome.error)
            return []
        if outcome.done:
            self.state = StreamState.DONE
            return [*outcome.deltas, StreamDelta(content="", is_final=True)]
        return list(outcome.deltas)


class ChatStream:
    """Открытый стрим ответа: итерируется один раз, держит соединение до `close()`.

    Ошибка провайдера до первого байта (не-2xx) поднимается сразу из конструктора.
    Ошибка посреди стрима поднимается из итерации после уже выданных дельт.
    """

    def __init__(
        self,
        opened: AbstractContextManager[TransportStream],
        dialect: Dialect,
        provider: Provider,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.provider = provider
        self.dialect = dialect
        self._reassembler = StreamReassembler(dialect, provider)
        self._delivered = 0
        self._closed = False
        self._stack = ExitStack()
        if on_close is not None:
            self._stack.callback(on_close)
        try:
            self._stream = self._stack.enter_context(opened)
            if not 200 <= self._stream.status < 300:
                body = self._stream.read()
                decode(self._stream.status, body, dialect, provider, self._stream.headers)
        except CanonicalError:
            self._release()
            raise
        except httpx.HTTPError as e:
            self._release()
            raise map_transport_exception(e, provider) from e
        self._gen = self._deltas()

    @property
    def state(self) -> StreamState:
        return self._reassembler.state

    @property
    def error(self) -> CanonicalError | None:
        return self._reassembler.error

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[StreamDelta]:
        return self

    def __next__(self) -> StreamDelta:
        return next(self._gen)

    def __enter__(self) -> ChatStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Бросить стрим: соединение закрывается, дельт больше не будет."""
        self._gen.close()
        self._release()

    def collect(self) -> ChatResponse:
        """Дочитывает стрим и склеивает дельты в обычный `ChatResponse`."""
        texts: dict[int, list[str]] = {}
        roles: dict[int, Role] = {}
        finish: dict[int, FinishReason] = {}
        for delta in self:
            if delta.is_final:
                continue
            texts.setdefault(delta.index, []).append(delta.content)
            if delta.role is not None:
                roles[delta.index] = delta.role
            if delta.finish_reason is not None:
                finish[delta.index] = delta.finish_reason
        indexes = sorted(texts) or [0]
        choices = tuple(
            Choice(
                index=i,
                message=Message(
                    role=roles.get(i, Role.ASSISTANT), content="".join(texts.get(i, []))
                ),
                finish_reason=finish.get(i, FinishReason.UNKNOWN),
            )
            for i in indexes
        )
        return ChatResponse(choices=choices, provider=self.provider)

    def _deltas(self) -> Iterator[StreamDelta]:
        r = self._reassembler
        try:
            for chunk in self._stream.iter_bytes():
                for delta in r.feed(chunk):
                    self._delivered += 1
                    yield delta
                if r.terminal:
                    break
            else:
                for delta in r.finish():
                    self._delivered += 1
                    yield delta
        except httpx.HTTPError as e:
            r.fail(map_transport_exception(e, self.provider))
        finally:
            self._release()
        if r.error is not None:
            raise r.error

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stack.close()
        stream_deltas_total.labels(provider=self.provider.value).inc(self._delivered)
        log.debug(
            "stream_closed",
            provider=self.provider.value,
            state=self.state.value,
            deltas=self._delivered,
        )
