"""HTTP транспорт (httpx): один POST или стрим байтов. Без ретраев.

Ошибки сети пробрасываются как исключения httpx (`httpx.TransportError` и
наследники); в `CanonicalError` их переводит клиент, который знает провайдера.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Protocol

import httpx

from chatbridge.settings import get_settings


@dataclass(frozen=True)
class TransportResponse:
    status: int
    headers: Mapping[str, str]
    body: bytes


class TransportStream(Protocol):
    status: int
    headers: Mapping[str, str]

    def iter_bytes(self) -> Iterator[bytes]: ...

    def read(self) -> bytes: ...


class Transport(Protocol):
    def send(self, url: str, headers: Mapping[str, str], body: bytes) -> TransportResponse: ...

    def open(
        self, url: str, headers: Mapping[str, str], body: bytes
    ) -> AbstractContextManager[TransportStream]: ...


class HttpxStream:
    """Открытый стрим поверх `httpx.Response` (закрывается владельцем контекста)."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.status = response.status_code
        self.headers = response.headers

    def iter_bytes(self) -> Iterator[bytes]:
        return self._response.iter_bytes()

    def read(self) -> bytes:
        return self._response.read()


class HttpxTransport:
    """Транспорт на `httpx.Client`. Клиент можно передать свой (тогда закрывает его владелец)."""

    def __init__(self, client: httpx.Client | None = None, timeout: float | None = None) -> None:
        if timeout is None:
            timeout = get_settings().http_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(float(timeout)))

    def send(self, url: str, headers: Mapping[str, str], body: bytes) -> TransportResponse:
        r = self._client.post(url, content=body, headers=dict(headers))
        return TransportResponse(status=r.status_code, headers=r.headers, body=r.content)

    @contextmanager
    def open(self, url: str, headers: Mapping[str, str], body: bytes) -> Iterator[HttpxStream]:
        request = self._client.build_request("POST", url, content=body, headers=dict(headers))
        response = self._client.send(request, stream=True)
        try:
            yield HttpxStream(response)
        finally:
            response.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
