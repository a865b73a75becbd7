"""Канонические типы: провайдеры, сообщения, запросы и ответы (без wire-формата)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Provider(StrEnum):
    """Закрытый список поддерживаемых провайдеров."""

    OPENAI = "openai"
    DEEPINFRA = "deepinfra"
    HYPERBOLIC = "hyperbolic"
    GROQ = "groq"
    TOGETHER = "together"
    OPENROUTER = "openrouter"
    MISTRAL = "mistral"
    FIREWORKS = "fireworks"
    CEREBRAS = "cerebras"
    SAMBANOVA = "sambanova"
    GOOGLE = "google"
    ANTHROPIC = "anthropic"

    @classmethod
    def parse(cls, name: str) -> Provider:
        """Провайдер по имени (без учёта регистра)."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {name}") from None


class Dialect(StrEnum):
    """Wire-формат, на котором говорит провайдер."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALL = "tool_call"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def __post_init__(self) -> None:
        # Роль принимаем и строкой, но храним всегда как Role.
        object.__setattr__(self, "role", Role(self.role))
        if not isinstance(self.content, str):
            raise ValueError("Message.content должен быть строкой")

    @classmethod
    def from_str(cls, role: str, content: str) -> Message:
        return cls(role=Role(role), content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class GenerationParams:
    """Параметры генерации. `None` означает «не передавать» (действует дефолт провайдера).

    Документированные диапазоны (локально не проверяются, допустимые значения
    у провайдеров разные; выход за границы вернётся как `bad_request` от провайдера):

    - `temperature`: 0..2
    - `max_tokens`: > 0
    - `top_p`: 0..1
    - `presence_penalty`, `frequency_penalty`: -2..2
    - `stop`: до 4 строк у большинства провайдеров
    - `other`: произвольные поля верхнего уровня, передаются как есть
    """

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop: tuple[str, ...] | None = None
    seed: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    other: dict[str, Any] | None = None

    def present(self) -> dict[str, Any]:
        """Только заданные параметры (без `other`), в стабильном порядке."""
        out: dict[str, Any] = {}
        for name in (
            "temperature",
            "max_tokens",
            "top_p",
            "stop",
            "seed",
            "presence_penalty",
            "frequency_penalty",
        ):
            value = getattr(self, name)
            if value is None:
                continue
            out[name] = list(value) if name == "stop" else value
        return out


@dataclass(frozen=True)
class ChatRequest:
    model: str
    messages: tuple[Message, ...]
    params: GenerationParams = field(default_factory=GenerationParams)

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages))
        if not isinstance(self.model, str) or not self.model.strip():
            raise ValueError("ChatRequest.model не может быть пустым")
        if not self.messages:
            raise ValueError("ChatRequest.messages не может быть пустым")

    @classmethod
    def build(cls, model: str, messages: list[Message], **params: Any) -> ChatRequest:
        """Удобный конструктор: параметры генерации передаются keyword-аргументами."""
        return cls(model=model, messages=tuple(messages), params=GenerationParams(**params))


@dataclass(frozen=True)
class Choice:
    index: int
    message: Message
    finish_reason: FinishReason


@dataclass(frozen=True)
class ChatResponse:
    choices: tuple[Choice, ...]
    provider: Provider
    id: str | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "choices", tuple(self.choices))
        if not self.choices:
            raise ValueError("ChatResponse должен содержать хотя бы один choice")

    @property
    def content(self) -> str:
        """Текст первого choice (самый частый случай)."""
        return self.choices[0].message.content


@dataclass(frozen=True)
class StreamDelta:
    """Кусок ответа в стриме. Пустой `content` означает keep-alive, его не выкидываем."""

    content: str
    index: int = 0
    role: Role | None = None
    finish_reason: FinishReason | None = None
    is_final: bool = False
