"""chatbridge: один канонический chat-completion поверх разных провайдеров."""

from chatbridge.client import chat_completion, stream_chat_completion
from chatbridge.credentials import Credential, CredentialStore, load_keys
from chatbridge.services.errors import CanonicalError, ConfigError, EncodeError, ErrorKind
from chatbridge.types import (
    ChatRequest,
    ChatResponse,
    Choice,
    Dialect,
    FinishReason,
    GenerationParams,
    Message,
    Provider,
    Role,
    StreamDelta,
)

__version__ = "0.1.0"

__all__ = [
    "CanonicalError",
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "ConfigError",
    "Credential",
    "CredentialStore",
    "Dialect",
    "EncodeError",
    "ErrorKind",
    "FinishReason",
    "GenerationParams",
    "Message",
    "Provider",
    "Role",
    "StreamDelta",
    "chat_completion",
    "load_keys",
    "stream_chat_completion",
]
