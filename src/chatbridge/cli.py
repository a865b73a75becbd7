"""CLI утилита: chat / tts / providers."""

import argparse
import sys
from pathlib import Path

from chatbridge.client import chat_completion, stream_chat_completion
from chatbridge.credentials import Credential, CredentialStore, load_default_store, load_keys
from chatbridge.infrastructure.logging import configure_logging
from chatbridge.providers.registry import PROVIDERS
from chatbridge.services.errors import CanonicalError, ConfigError
from chatbridge.settings import get_settings
from chatbridge.text_to_speech import TTSConfig, tts
from chatbridge.types import ChatRequest, Message, Provider


def _store(args: argparse.Namespace) -> CredentialStore:
    if args.keys:
        return load_keys(args.keys)
    return load_default_store()


def _credential(args: argparse.Namespace, provider: Provider) -> Credential | None:
    credential = _store(args).lookup(provider)
    if credential is None:
        print(
            f"Нет ключа для {provider.value}: задайте {provider.value.upper()}_KEY",
            file=sys.stderr,
        )
    return credential


def cmd_chat(args: argparse.Namespace) -> int:
    """Один запрос к модели; ответ печатаем в stdout."""
    provider = Provider.parse(args.provider)
    credential = _credential(args, provider)
    if credential is None:
        return 2

    messages = []
    if args.system:
        messages.append(Message.from_str("system", args.system))
    messages.append(Message.from_str("user", args.message))
    request = ChatRequest.build(
        args.model or get_settings().default_model,
        messages,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )

    if args.stream:
        with stream_chat_completion(provider, credential, request) as stream:
            for delta in stream:
                sys.stdout.write(delta.content)
                sys.stdout.flush()
        sys.stdout.write("\n")
        return 0

    resp = chat_completion(provider, credential, request)
    print(resp.content)
    return 0


def cmd_tts(args: argparse.Namespace) -> int:
    """Синтез речи в файл."""
    provider = Provider.parse(args.provider)
    credential = _credential(args, provider)
    if credential is None:
        return 2

    config = TTSConfig(
        output_format=args.format,
        voice=args.voice,
        speed=args.speed,
        language_code=args.language_code,
    )
    speech = tts(credential, config, args.model, args.text).structured()
    out = Path(args.out or f"speech.{speech.file_format}")
    out.write_bytes(speech.audio)
    print(f"{out} ({len(speech.audio)} bytes)")
    return 0


def cmd_providers(args: argparse.Namespace) -> int:
    """Список провайдеров, их диалект и есть ли ключ."""
    store = _store(args)
    for provider, spec in PROVIDERS.items():
        mark = "+" if provider in store else "-"
        print(f"{mark} {provider.value:<12} {spec.dialect.value:<10} {spec.chat_url}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Точка входа CLI."""
    parser = argparse.ArgumentParser(prog="chatbridge", description="chatbridge: CLI")
    parser.add_argument("--keys", default=None, help="dotenv-файл с ключами (OPENAI_KEY=...)")
    parser.add_argument("--log-level", default=None, help="Уровень логов (в stderr)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_chat = sub.add_parser("chat", help="Chat completion")
    p_chat.add_argument("message", help="Сообщение пользователя")
    p_chat.add_argument("--provider", default=get_settings().default_provider)
    p_chat.add_argument("--model", default=None)
    p_chat.add_argument("--system", default=None, help="System prompt")
    p_chat.add_argument("--temperature", type=float, default=None)
    p_chat.add_argument("--max-tokens", type=int, default=None)
    p_chat.add_argument("--stream", action="store_true", help="Печатать ответ по мере генерации")
    p_chat.set_defaults(func=cmd_chat)

    p_tts = sub.add_parser("tts", help="Text-to-speech")
    p_tts.add_argument("text", help="Текст для озвучки")
    p_tts.add_argument("--provider", required=True)
    p_tts.add_argument("--model", default=None)
    p_tts.add_argument("--voice", default=None)
    p_tts.add_argument("--language-code", default=None)
    p_tts.add_argument("--speed", type=float, default=None)
    p_tts.add_argument("--format", default=None, help="Формат аудио (mp3, wav, ...)")
    p_tts.add_argument("--out", default=None, help="Куда сохранить аудио")
    p_tts.set_defaults(func=cmd_tts)

    p_providers = sub.add_parser("providers", help="Известные провайдеры")
    p_providers.set_defaults(func=cmd_providers)

    args = parser.parse_args(argv)
    configure_logging(args.log_level or "WARNING")
    try:
        return int(args.func(args))
    except ConfigError as e:
        print(f"Ошибка конфигурации: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"Ошибка: {e}", file=sys.stderr)
        return 2
    except CanonicalError as e:
        print(f"Ошибка провайдера: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
