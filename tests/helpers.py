"""Стабы транспорта и SSE-фреймы для тестов."""

import json
from contextlib import contextmanager

from chatbridge.infrastructure.transport import TransportResponse


class StubStream:
    def __init__(self, status: int, headers: dict, chunks: list[bytes], error: Exception | None):
        self.status = status
        self.headers = headers
        self._chunks = chunks
        self._error = error
        self.consumed = 0

    def iter_bytes(self):
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk
        if self._error is not None:
            raise self._error

    def read(self) -> bytes:
        return b"".join(self._chunks)


class StubTransport:
    """Транспорт без сети: отдаёт заранее заданный ответ и запоминает вызовы."""

    def __init__(
        self,
        status: int = 200,
        body: bytes | dict = b"",
        headers: dict | None = None,
        chunks: list[bytes] | None = None,
        error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.status = status
        self.body = json.dumps(body).encode() if isinstance(body, dict) else body
        self.headers = headers or {}
        self.chunks = chunks or []
        self.error = error
        self.stream_error = stream_error
        self.calls: list[tuple[str, dict, bytes]] = []
        self.stream: StubStream | None = None
        self.closed = False

    def send(self, url, headers, body) -> TransportResponse:
        self.calls.append((url, dict(headers), body))
        if self.error is not None:
            raise self.error
        return TransportResponse(status=self.status, headers=self.headers, body=self.body)

    @contextmanager
    def open(self, url, headers, body):
        self.calls.append((url, dict(headers), body))
        if self.error is not None:
            raise self.error
        self.stream = StubStream(self.status, self.headers, self.chunks, self.stream_error)
        try:
            yield self.stream
        finally:
            self.closed = True


def sse(*payloads) -> list[bytes]:
    """Готовые SSE-фреймы OpenAI-формата (dict -> JSON, str как есть)."""
    out = []
    for p in payloads:
        data = p if isinstance(p, str) else json.dumps(p)
        out.append(f"data: {data}\n\n".encode())
    return out


def content_chunk(text: str, finish: str | None = None) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": finish}]}


