"""Клиент: ключ -> encode -> транспорт -> decode / стрим. Одна попытка, без ретраев."""

from __future__ import annotations

import time

import httpx
import structlog

from chatbridge.credentials import Credential
from chatbridge.decoder import decode
from chatbridge.encoder import encode
from chatbridge.infrastructure.transport import HttpxTransport, Transport
from chatbridge.metrics import errors_total, request_latency_seconds, requests_total
from chatbridge.providers.registry import auth_headers, get_spec
from chatbridge.services.errors import CanonicalError, map_transport_exception
from chatbridge.services.redaction import redact_headers
from chatbridge.settings import get_settings
from chatbridge.streaming import ChatStream
from chatbridge.types import ChatRequest, ChatResponse, Provider

log = structlog.get_logger()


def _encode_header_value(value: str) -> str | bytes:
    """Кодирует заголовок в ASCII или UTF-8 (байты), если там есть не-ASCII."""
    try:
        value.encode("ascii")
        return value
    except UnicodeEncodeError:
        return value.encode("utf-8")


def _check_credential(provider: Provider, credential: Credential) -> None:
    if credential.provider != provider:
        raise ValueError(
            f"Ключ от {credential.provider.value} нельзя использовать для {provider.value}"
        )


def build_headers(credential: Credential, base: dict[str, str]) -> dict:
    settings = get_settings()
    headers: dict = dict(base)
    headers.update(auth_headers(credential))
    # Атрибуция приложения (её понимает OpenRouter, остальные игнорируют).
    if settings.http_referer:
        headers["HTTP-Referer"] = settings.http_referer
    if settings.app_title:
        headers["X-Title"] = _encode_header_value(settings.app_title)
    log.debug(
        "provider_headers", provider=credential.provider.value, headers=redact_headers(headers)
    )
    return headers


def _record_failure(provider: Provider, kind: str, err: CanonicalError) -> None:
    errors_total.labels(provider=provider.value, error_kind=err.kind.value).inc()
    requests_total.labels(provider=provider.value, kind=kind, status="failed").inc()


def chat_completion(
    provider: Provider,
    credential: Credential,
    request: ChatRequest,
    transport: Transport | None = None,
) -> ChatResponse:
    """Один не-стриминговый запрос. Неуспех всегда `CanonicalError`."""
    _check_credential(provider, credential)
    spec = get_spec(provider)
    encoded = encode(request, spec.dialect)
    headers = build_headers(credential, encoded.headers)

    own_transport = transport is None
    transport = transport or HttpxTransport()
    endpoint = "chat"
    t0 = time.time()
    try:
        try:
            r = transport.send(spec.chat_url, headers, encoded.body)
        except httpx.HTTPError as e:
            err = map_transport_exception(e, provider)
            log.warning("provider_error", err=str(e), **err.log_fields())
            raise err from e
        response = decode(r.status, r.body, spec.dialect, provider, r.headers)
    except CanonicalError as err:
        _record_failure(provider, endpoint, err)
        raise
    finally:
        request_latency_seconds.labels(provider=provider.value, kind=endpoint).observe(
            time.time() - t0
        )
        if own_transport:
            transport.close()

    requests_total.labels(provider=provider.value, kind=endpoint, status="succeeded").inc()
    log.info(
        "chat_completion",
        provider=provider.value,
        model=request.model,
        choices=len(response.choices),
        latency_ms=int((time.time() - t0) * 1000),
    )
    return response


def stream_chat_completion(
    provider: Provider,
    credential: Credential,
    request: ChatRequest,
    transport: Transport | None = None,
) -> ChatStream:
    """Открывает стрим. Закрывает его (`close()`/`with`) вызывающий код.

    Если транспорт создан здесь, он живёт до конца стрима и закрывается вместе с ним.
    """
    _check_credential(provider, credential)
    spec = get_spec(provider)
    encoded = encode(request, spec.dialect, stream=True)
    headers = build_headers(credential, encoded.headers)

    own = transport is None
    transport = transport or HttpxTransport()
    endpoint = "chat_stream"
    t0 = time.time()
    try:
        stream = ChatStream(
            transport.open(spec.chat_url, headers, encoded.body),
            spec.dialect,
            provider,
            on_close=transport.close if own else None,
        )
    except CanonicalError as err:
        _record_failure(provider, endpoint, err)
        raise
    finally:
        request_latency_seconds.labels(provider=provider.value, kind=endpoint).observe(
            time.time() - t0
        )

    requests_total.labels(provider=provider.value, kind=endpoint, status="opened").inc()
    log.info("chat_stream_opened", provider=provider.value, model=request.model)
    return stream
