from pathlib import Path

from chatbridge.cli import main
from chatbridge.types import Provider


def test_providers_lists_all(tmp_path: Path, capsys) -> None:
    keys = tmp_path / "keys.env"
    keys.write_text("GROQ_API_KEY=gsk-0123456789\n", encoding="utf-8")
    assert main(["--keys", str(keys), "providers"]) == 0
    out = capsys.readouterr().out
    lines = out.strip().splitlines()
    assert len(lines) == len(Provider)
    assert any(line.startswith("+ groq") for line in lines)
    assert any(line.startswith("- openai") for line in lines)
    assert "gsk-0123456789" not in out


def test_chat_without_key_exits_2(tmp_path: Path, capsys) -> None:
    keys = tmp_path / "keys.env"
    keys.write_text("GROQ_API_KEY=gsk-0123456789\n", encoding="utf-8")
    assert main(["--keys", str(keys), "chat", "hi", "--provider", "openai"]) == 2
    assert "OPENAI_KEY" in capsys.readouterr().err


def test_missing_keys_file_is_config_error(tmp_path: Path, capsys) -> None:
    assert main(["--keys", str(tmp_path / "nope.env"), "providers"]) == 2
    assert "Ошибка конфигурации" in capsys.readouterr().err


def test_unknown_provider(tmp_path: Path, capsys) -> None:
    keys = tmp_path / "keys.env"
    keys.write_text("", encoding="utf-8")
    assert main(["--keys", str(keys), "chat", "hi", "--provider", "nope"]) == 2
    assert "Unknown provider" in capsys.readouterr().err
