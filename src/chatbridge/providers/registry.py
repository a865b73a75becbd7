"""Реестр провайдеров: диалект, базовый URL и схема авторизации (статично, на процесс)."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from chatbridge.credentials import Credential
from chatbridge.types import Dialect, Provider

ANTHROPIC_VERSION = "2023-06-01"

AuthHeaderBuilder = Callable[[str], dict[str, str]]


def bearer_auth(secret: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}


def anthropic_auth(secret: str) -> dict[str, str]:
    return {"x-api-key": secret, "anthropic-version": ANTHROPIC_VERSION}


@dataclass(frozen=True)
class ProviderSpec:
    dialect: Dialect
    base_url: str
    chat_path: str
    auth_header: AuthHeaderBuilder = bearer_auth

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}{self.chat_path}"


PROVIDERS: Mapping[Provider, ProviderSpec] = MappingProxyType(
    {
        Provider.OPENAI: ProviderSpec(
            Dialect.OPENAI, "https://api.openai.com", "/v1/chat/completions"
        ),
        Provider.DEEPINFRA: ProviderSpec(
            Dialect.OPENAI, "https://api.deepinfra.com", "/v1/openai/chat/completions"
        ),
        Provider.HYPERBOLIC: ProviderSpec(
            Dialect.OPENAI, "https://api.hyperbolic.xyz", "/v1/chat/completions"
        ),
        Provider.GROQ: ProviderSpec(
            Dialect.OPENAI, "https://api.groq.com", "/openai/v1/chat/completions"
        ),
        Provider.TOGETHER: ProviderSpec(
            Dialect.OPENAI, "https://api.together.xyz", "/v1/chat/completions"
        ),
        Provider.OPENROUTER: ProviderSpec(
            Dialect.OPENAI, "https://openrouter.ai", "/api/v1/chat/completions"
        ),
        Provider.MISTRAL: ProviderSpec(
            Dialect.OPENAI, "https://api.mistral.ai", "/v1/chat/completions"
        ),
        Provider.FIREWORKS: ProviderSpec(
            Dialect.OPENAI, "https://api.fireworks.ai", "/inference/v1/chat/completions"
        ),
        Provider.CEREBRAS: ProviderSpec(
            Dialect.OPENAI, "https://api.cerebras.ai", "/v1/chat/completions"
        ),
        Provider.SAMBANOVA: ProviderSpec(
            Dialect.OPENAI, "https://api.sambanova.ai", "/v1/chat/completions"
        ),
        Provider.GOOGLE: ProviderSpec(
            Dialect.OPENAI,
            "https://generativelanguage.googleapis.com",
            "/v1beta/openai/chat/completions",
        ),
        Provider.ANTHROPIC: ProviderSpec(
            Dialect.ANTHROPIC, "https://api.anthropic.com", "/v1/messages", anthropic_auth
        ),
    }
)


def get_spec(provider: Provider) -> ProviderSpec:
    return PROVIDERS[provider]


def dialect_for(provider: Provider) -> Dialect:
    return PROVIDERS[provider].dialect


def chat_url(provider: Provider) -> str:
    return PROVIDERS[provider].chat_url


def auth_headers(credential: Credential) -> dict[str, str]:
    """Заголовки авторизации в той схеме, которую ждёт провайдер ключа."""
    return PROVIDERS[credential.provider].auth_header(credential.secret)
