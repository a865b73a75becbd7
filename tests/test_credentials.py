import pytest

from chatbridge.credentials import CredentialStore, load_keys
from chatbridge.services.errors import ConfigError
from chatbridge.types import Provider


def test_empty_source_has_no_credentials() -> None:
    store = CredentialStore.load({})
    for provider in Provider:
        assert store.lookup(provider) is None
    assert len(store) == 0


def test_load_picks_known_providers_only() -> None:
    store = CredentialStore.load(
        {"OPENAI_KEY": "sk-1", "deepinfra_api_key": " di-2 ", "PATH": "/bin", "SSH_KEY": "x"}
    )
    assert store.lookup(Provider.OPENAI).secret == "sk-1"
    assert store.lookup(Provider.DEEPINFRA).secret == "di-2"
    assert store.lookup(Provider.GROQ) is None
    assert store.providers() == [Provider.OPENAI, Provider.DEEPINFRA]


def test_empty_value_for_known_provider_is_config_error() -> None:
    with pytest.raises(ConfigError):
        CredentialStore.load({"OPENAI_KEY": "   "})
    with pytest.raises(ConfigError):
        CredentialStore.load({"GROQ_KEY": None})


def test_non_mapping_source_is_config_error() -> None:
    with pytest.raises(ConfigError):
        CredentialStore.load([("OPENAI_KEY", "sk")])  # type: ignore[arg-type]


def test_from_file(tmp_path) -> None:
    env = tmp_path / ".env"
    env.write_text("# keys\nOPENAI_KEY=sk-file\nANTHROPIC_KEY='sk-ant'\n", encoding="utf-8")
    store = load_keys(env)
    assert store.lookup(Provider.OPENAI).secret == "sk-file"
    assert store.lookup(Provider.ANTHROPIC).secret == "sk-ant"


def test_missing_file_is_config_error(tmp_path) -> None:
    with pytest.raises(ConfigError):
        CredentialStore.from_file(tmp_path / "nope.env")


def test_from_env_uses_given_mapping() -> None:
    store = CredentialStore.from_env({"MISTRAL_KEY": "m-1"})
    assert Provider.MISTRAL in store


def test_repr_never_shows_secret() -> None:
    store = CredentialStore.load({"OPENAI_KEY": "sk-very-secret-value"})
    cred = store.lookup(Provider.OPENAI)
    assert "sk-very-secret-value" not in repr(cred)
    assert "sk-very-secret-value" not in str(cred)
    assert "sk-very-secret-value" not in repr(store)
