"""Response Decoder: (status, body) провайдера -> `ChatResponse` или `CanonicalError`."""

from __future__ import annotations

import json
import math
import time
from collections.abc import Mapping
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any

import structlog

from chatbridge.providers.factory import get_codec
from chatbridge.services.errors import CanonicalError, ErrorKind, kind_for_status
from chatbridge.services.redaction import redact_result_summary
from chatbridge.types import ChatResponse, Dialect, Provider

log = structlog.get_logger()

_MAX_RAW_MESSAGE = 500

_NOT_PARSED = object()


def _parse_body(body: bytes | str) -> Any:
    try:
        return json.loads(body)
    except (ValueError, TypeError, RecursionError):
        return _NOT_PARSED


def _raw_text(body: bytes | str) -> str:
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
    text = text.strip()
    if len(text) > _MAX_RAW_MESSAGE:
        text = text[:_MAX_RAW_MESSAGE] + "..."
    return text


def _finite(value: object) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # `inf`/`nan` не сериализуются в JSON ответа шлюза.
    return number if math.isfinite(number) else None


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """`Retry-After` (секунды или HTTP-date) либо `retry-after-ms` -> секунды."""
    if not headers:
        return None
    lowered = {str(k).lower(): v for k, v in headers.items()}

    ms = _finite(lowered.get("retry-after-ms"))
    if ms is not None:
        return max(0.0, ms / 1000.0)

    value = lowered.get("retry-after")
    if value is None:
        return None
    value = str(value).strip()
    seconds = _finite(value)
    if seconds is not None:
        return max(0.0, seconds)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        # `-0000` в дате: время в UTC, без известной зоны.
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, when.timestamp() - time.time())


def decode(
    status_code: int,
    body: bytes | str,
    dialect: Dialect,
    provider: Provider,
    headers: Mapping[str, str] | None = None,
) -> ChatResponse:
    """Разбирает ответ провайдера. Любой неуспех даёт `CanonicalError`, других исключений нет."""
    codec = get_codec(dialect)
    data = _parse_body(body)

    if 200 <= status_code < 300:
        if data is _NOT_PARSED:
            log.warning("decode_fault", provider=provider.value, reason="invalid_json")
            raise CanonicalError(
                ErrorKind.DECODE_FAULT,
                "Тело ответа не является JSON",
                provider=provider,
                status_code=status_code,
            )
        try:
            return codec.parse_response(data, provider)
        except CanonicalError as e:
            log.warning(
                "decode_fault",
                body=redact_result_summary(data),
                **e.log_fields(),
            )
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning(
                "decode_fault",
                provider=provider.value,
                body=redact_result_summary(data),
                err=str(e),
            )
            raise CanonicalError(
                ErrorKind.DECODE_FAULT,
                f"Неожиданная структура ответа: {e}",
                provider=provider,
                status_code=status_code,
            ) from e

    kind = kind_for_status(status_code)
    message = None
    if data is not _NOT_PARSED:
        message = codec.error_message(data)
    if not message:
        message = _raw_text(body) or f"HTTP {status_code}"

    err = CanonicalError(
        kind,
        message,
        provider=provider,
        retry_after=parse_retry_after(headers) if kind == ErrorKind.RATE_LIMITED else None,
        status_code=status_code,
    )
    log.warning("provider_error", **err.log_fields())
    raise err
