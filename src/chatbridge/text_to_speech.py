"""Text-to-speech: синтез речи у DeepInfra, Hyperbolic, OpenAI и Google.

Каждый провайдер хочет свой адрес и своё тело запроса, а аудио отдаёт
по-своему (base64 в JSON или сырые байты). Наружу всегда выходит `Speech`.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from chatbridge.credentials import Credential
from chatbridge.infrastructure.transport import HttpxTransport, Transport, TransportResponse
from chatbridge.metrics import requests_total
from chatbridge.providers.registry import auth_headers, get_spec
from chatbridge.services.errors import (
    CanonicalError,
    ErrorKind,
    kind_for_status,
    map_transport_exception,
)
from chatbridge.types import Provider

log = structlog.get_logger()

DEEPINFRA_DEFAULT_MODEL = "hexgrad/Kokoro-82M"
GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1beta1/text:synthesize"

TTS_PROVIDERS = (Provider.DEEPINFRA, Provider.HYPERBOLIC, Provider.OPENAI, Provider.GOOGLE)

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,")


@dataclass
class TTSConfig:
    output_format: str | None = None
    voice: str | None = None
    speed: float | None = None
    language_code: str | None = None
    other: dict[str, Any] | None = None


@dataclass(frozen=True)
class Speech:
    request_id: str | None
    file_format: str
    audio: bytes

    @staticmethod
    def base64_decode(audio: str, provider: Provider) -> bytes:
        """base64 -> байты (DeepInfra присылает data URL, префикс срезаем)."""
        stripped = _DATA_URL_PREFIX.sub("", audio, count=1)
        try:
            return base64.b64decode(stripped, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CanonicalError(
                ErrorKind.DECODE_FAULT, f"Аудио не в base64: {e}", provider=provider
            ) from e


def _address(credential: Credential, model: str | None) -> str:
    provider = credential.provider
    domain = get_spec(provider).base_url
    if provider == Provider.DEEPINFRA:
        return f"{domain}/v1/inference/{model or DEEPINFRA_DEFAULT_MODEL}"
    if provider == Provider.HYPERBOLIC:
        return f"{domain}/v1/audio/generation"
    if provider == Provider.OPENAI:
        return f"{domain}/v1/audio/speech"
    if provider == Provider.GOOGLE:
        return f"{GOOGLE_TTS_URL}?key={credential.secret}"
    raise ValueError(f"Unsupported TTS provider: {provider.value}")


def build_tts_payload(
    provider: Provider, config: TTSConfig, model: str | None, text: str
) -> dict[str, Any]:
    if provider not in TTS_PROVIDERS:
        raise ValueError(f"Unsupported TTS provider: {provider.value}")

    body: dict[str, Any] = {}
    if provider == Provider.OPENAI:
        body["input"] = text
    elif provider == Provider.GOOGLE:
        body["input"] = {"text": text}
    else:
        body["text"] = text
    if model:
        body["model"] = model

    if config.voice:
        if provider == Provider.OPENAI:
            body["voice"] = config.voice
        elif provider == Provider.GOOGLE:
            body["voice"] = {"name": config.voice}
            if config.language_code:
                body["voice"]["languageCode"] = config.language_code
        elif provider == Provider.DEEPINFRA:
            body["preset_voice"] = config.voice
        else:
            raise ValueError(f"{provider.value} не поддерживает выбор голоса")

    if provider == Provider.GOOGLE:
        body["audioConfig"] = {
            "audioEncoding": "MP3",
            "pitch": 0,
            "speakingRate": config.speed if config.speed is not None else 1,
        }
    elif config.speed is not None:
        body["speed"] = config.speed

    if config.output_format:
        key = "response_format" if provider == Provider.OPENAI else "output_format"
        body[key] = config.output_format
    if config.other:
        body.update(config.other)
    return body


def _json_or_none(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        return None


def _error_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("detail", "error"):
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
        return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return None


class SpeechResponse:
    """Сырой ответ TTS; `structured()` превращает его в `Speech`."""

    def __init__(self, provider: Provider, response: TransportResponse, config: TTSConfig) -> None:
        self.provider = provider
        self.status = response.status
        self._body = response.body
        self._config = config

    def bytes(self) -> bytes:
        return self._body

    def raw_value(self) -> Any:
        try:
            return json.loads(self._body)
        except (ValueError, RecursionError) as e:
            raise CanonicalError(
                ErrorKind.DECODE_FAULT, "Ответ TTS не JSON", provider=self.provider
            ) from e

    def _fail(self, kind: ErrorKind, message: str) -> CanonicalError:
        err = CanonicalError(kind, message, provider=self.provider, status_code=self.status)
        log.warning("tts_error", **err.log_fields())
        return err

    def _audio_field(self, data: Any, key: str) -> str:
        audio = data.get(key) if isinstance(data, dict) else None
        if not isinstance(audio, str) or not audio:
            raise self._fail(ErrorKind.DECODE_FAULT, f"В ответе нет поля {key}")
        return audio

    def structured(self) -> Speech:
        if not 200 <= self.status < 300:
            data = _json_or_none(self._body)
            message = _error_text(data) or self._body[:300].decode("utf-8", errors="replace")
            raise self._fail(kind_for_status(self.status), message or f"HTTP {self.status}")

        fmt = self._config.output_format or "mp3"
        if self.provider == Provider.OPENAI:
            # Успешный ответ OpenAI содержит сами байты аудио; JSON бывает только с ошибкой.
            data = _json_or_none(self._body)
            if _error_text(data):
                raise self._fail(ErrorKind.PROVIDER_FAULT, _error_text(data))
            return Speech(request_id=None, file_format=fmt, audio=self._body)

        data = self.raw_value()
        if _error_text(data):
            raise self._fail(ErrorKind.PROVIDER_FAULT, _error_text(data))

        if self.provider == Provider.DEEPINFRA:
            request_id = data.get("request_id")
            return Speech(
                request_id=request_id if isinstance(request_id, str) else None,
                file_format=str(data.get("output_format") or fmt),
                audio=Speech.base64_decode(self._audio_field(data, "audio"), self.provider),
            )
        if self.provider == Provider.HYPERBOLIC:
            return Speech(
                request_id=None,
                file_format=fmt,
                audio=Speech.base64_decode(self._audio_field(data, "audio"), self.provider),
            )
        # Google
        return Speech(
            request_id=None,
            file_format="mp3",
            audio=Speech.base64_decode(self._audio_field(data, "audioContent"), self.provider),
        )


def tts(
    credential: Credential,
    config: TTSConfig,
    model: str | None,
    text: str,
    transport: Transport | None = None,
) -> SpeechResponse:
    """Один запрос синтеза речи. Ответ разбирается лениво через `SpeechResponse.structured()`."""
    provider = credential.provider
    address = _address(credential, model)
    body = build_tts_payload(provider, config, model, text)

    headers = {"Content-Type": "application/json"}
    if provider != Provider.GOOGLE:
        # У Google ключ уходит в query string, заголовка авторизации нет.
        headers.update(auth_headers(credential))

    log.debug("tts_request", provider=provider.value, model=model, text_len=len(text))
    own = transport is None
    transport = transport or HttpxTransport()
    try:
        raw = json.dumps(body, ensure_ascii=False).encode("utf-8")
        r = transport.send(address, headers, raw)
    except httpx.HTTPError as e:
        err = map_transport_exception(e, provider)
        requests_total.labels(provider=provider.value, kind="tts", status="failed").inc()
        log.warning("provider_error", **err.log_fields())
        raise err from e
    finally:
        if own:
            transport.close()

    status = "succeeded" if 200 <= r.status < 300 else "failed"
    requests_total.labels(provider=provider.value, kind="tts", status=status).inc()
    return SpeechResponse(provider, r, config)
