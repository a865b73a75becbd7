"""Нормализация ошибок провайдеров (одна таксономия `ErrorKind` на всех)."""

from __future__ import annotations

from enum import StrEnum

import httpx

from chatbridge.types import Provider


class ErrorKind(StrEnum):
    AUTH_FAILURE = "auth_failure"
    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    PROVIDER_FAULT = "provider_fault"
    NETWORK_FAULT = "network_fault"
    DECODE_FAULT = "decode_fault"
    UNKNOWN = "unknown"


class ConfigError(Exception):
    """Некорректный источник ключей или настроек (фатально на старте, не per-request)."""


class EncodeError(ValueError):
    """Запрос нарушает собственные инварианты ещё до отправки."""


class CanonicalError(Exception):
    """Ошибка одного запроса к провайдеру, без деталей wire-формата.

    Вызывающему коду достаточно смотреть на `kind`; ветвиться по провайдеру не нужно.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider: Provider | None = None,
        retry_after: float | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider
        self.retry_after = retry_after
        self.status_code = status_code

    def __str__(self) -> str:
        who = self.provider.value if self.provider is not None else "-"
        return f"[{self.kind.value}] {who}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"CanonicalError(kind={self.kind.value!r}, provider="
            f"{self.provider.value if self.provider else None!r}, "
            f"status_code={self.status_code!r}, retry_after={self.retry_after!r})"
        )

    def log_fields(self) -> dict:
        """Поля для structlog (без тела ответа и без ключей)."""
        return {
            "kind": self.kind.value,
            "provider": self.provider.value if self.provider else None,
            "status_code": self.status_code,
            "retry_after": self.retry_after,
        }


def kind_for_status(status_code: int) -> ErrorKind:
    """Классификация HTTP-статуса ответа провайдера (для не-2xx)."""
    if status_code in (401, 403):
        return ErrorKind.AUTH_FAILURE
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if 400 <= status_code < 500:
        return ErrorKind.BAD_REQUEST
    if 500 <= status_code < 600:
        return ErrorKind.PROVIDER_FAULT
    return ErrorKind.UNKNOWN


# kind -> (HTTP статус для клиента шлюза, type в JSON ошибки)
_PUBLIC: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.BAD_REQUEST: (400, "invalid_request_error"),
    ErrorKind.RATE_LIMITED: (429, "rate_limit_error"),
    ErrorKind.AUTH_FAILURE: (502, "upstream_error"),
    ErrorKind.PROVIDER_FAULT: (502, "upstream_error"),
    ErrorKind.NETWORK_FAULT: (504, "upstream_error"),
    ErrorKind.DECODE_FAULT: (502, "upstream_error"),
    ErrorKind.UNKNOWN: (502, "gateway_error"),
}


def public_status(err: CanonicalError) -> int:
    return _PUBLIC[err.kind][0]


def error_payload(err: CanonicalError) -> dict:
    """Формирует JSON `{error:{...}}` для клиента."""
    _, type_ = _PUBLIC[err.kind]
    body: dict = {"code": err.kind.value, "message": err.message, "type": type_}
    if err.provider is not None:
        body["provider"] = err.provider.value
    if err.retry_after is not None:
        body["retry_after"] = err.retry_after
    return {"error": body}


def map_transport_exception(exc: Exception, provider: Provider | None) -> CanonicalError:
    """Преобразует исключение транспорта (httpx) в `CanonicalError`."""
    if isinstance(exc, CanonicalError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return CanonicalError(
            ErrorKind.NETWORK_FAULT,
            "Upstream не ответил вовремя",
            provider=provider,
        )

    if isinstance(exc, (httpx.RemoteProtocolError, httpx.ReadError)):
        return CanonicalError(
            ErrorKind.NETWORK_FAULT,
            "Соединение с upstream оборвалось",
            provider=provider,
        )

    if isinstance(exc, httpx.TransportError):
        return CanonicalError(
            ErrorKind.NETWORK_FAULT,
            "Не удалось подключиться к upstream",
            provider=provider,
        )

    return CanonicalError(ErrorKind.UNKNOWN, f"Ошибка транспорта: {exc}", provider=provider)
