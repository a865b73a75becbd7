"""Хранилище ключей: provider -> секрет (env, `.env` файл или любой mapping)."""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import structlog
from dotenv import dotenv_values

from chatbridge.services.errors import ConfigError
from chatbridge.settings import get_settings
from chatbridge.types import Provider

log = structlog.get_logger()

_SUFFIXES = ("_API_KEY", "_KEY")


def mask_secret(secret: str) -> str:
    """`sk-...abcd` вместо ключа: для repr и логов."""
    if len(secret) <= 8:
        return "***"
    return f"{secret[:3]}...{secret[-4:]}"


@dataclass(frozen=True)
class Credential:
    provider: Provider
    secret: str

    def __repr__(self) -> str:
        return f"Credential(provider={self.provider.value!r}, secret={mask_secret(self.secret)!r})"

    __str__ = __repr__


def _provider_for_name(name: str) -> Provider | None:
    upper = name.strip().upper()
    for suffix in _SUFFIXES:
        if upper.endswith(suffix):
            try:
                return Provider(upper[: -len(suffix)].lower())
            except ValueError:
                return None
    return None


class CredentialStore:
    """Read-only набор ключей. Отсутствие ключа провайдера не ошибка."""

    def __init__(self, credentials: Mapping[Provider, Credential] | None = None) -> None:
        self._credentials = MappingProxyType(dict(credentials or {}))

    @classmethod
    def load(cls, source: Mapping[str, str | None]) -> CredentialStore:
        """Собирает store из пар `<PROVIDER>_KEY=<secret>`; лишние имена игнорирует."""
        if not isinstance(source, Mapping):
            raise ConfigError(f"Источник ключей должен быть mapping, а не {type(source).__name__}")

        found: dict[Provider, Credential] = {}
        for name, value in source.items():
            if not isinstance(name, str):
                raise ConfigError(f"Имя ключа должно быть строкой: {name!r}")
            provider = _provider_for_name(name)
            if provider is None:
                continue
            if value is None or not isinstance(value, str):
                raise ConfigError(f"{name}: значение ключа отсутствует или не строка")
            secret = value.strip()
            if not secret:
                raise ConfigError(f"{name}: пустой ключ")
            # `<P>_API_KEY` и `<P>_KEY` одновременно: побеждает первый встреченный.
            found.setdefault(provider, Credential(provider=provider, secret=secret))

        log.debug("credentials_loaded", providers=sorted(p.value for p in found))
        return cls(found)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> CredentialStore:
        """Читает dotenv-файл (`OPENAI_KEY=...`)."""
        p = Path(path)
        if not p.is_file():
            raise ConfigError(f"Файл с ключами не найден: {p}")
        try:
            values = dotenv_values(p, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Не удалось прочитать {p}: {e}") from e
        return cls.load(values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CredentialStore:
        return cls.load(os.environ if environ is None else environ)

    def lookup(self, provider: Provider) -> Credential | None:
        return self._credentials.get(provider)

    def providers(self) -> list[Provider]:
        return [p for p in Provider if p in self._credentials]

    def __contains__(self, provider: object) -> bool:
        return provider in self._credentials

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials.values())

    def __repr__(self) -> str:
        return f"CredentialStore(providers={[p.value for p in self.providers()]})"


def load_keys(path: str | os.PathLike[str] = ".env") -> CredentialStore:
    """Короткий вариант `CredentialStore.from_file`."""
    return CredentialStore.from_file(path)


def load_default_store() -> CredentialStore:
    """Ключи из окружения, поверх них ключи из `KEYS_FILE` (если файл есть)."""
    settings = get_settings()
    source: dict[str, str | None] = {}
    if settings.keys_from_env:
        source.update(os.environ)
    path = Path(settings.keys_file)
    if path.is_file():
        source.update(dotenv_values(path, encoding="utf-8"))
    return CredentialStore.load(source)

