"""Кодек по диалекту (закрытый набор, инстансы на процесс)."""

from chatbridge.providers.anthropic import AnthropicCodec
from chatbridge.providers.base import DialectCodec
from chatbridge.providers.openai_compat import OpenAICompatibleCodec
from chatbridge.types import Dialect

_CODECS: dict[Dialect, DialectCodec] = {
    Dialect.OPENAI: OpenAICompatibleCodec(),
    Dialect.ANTHROPIC: AnthropicCodec(),
}


def get_codec(dialect: Dialect) -> DialectCodec:
    """Возвращает кодек диалекта (`openai`, `anthropic`)."""
    return _CODECS[Dialect(dialect)]
