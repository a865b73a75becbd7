import pytest

from chatbridge.credentials import Credential
from chatbridge.types import Provider


@pytest.fixture
def openai_key() -> Credential:
    return Credential(provider=Provider.OPENAI, secret="sk-test-0123456789")


@pytest.fixture
def anthropic_key() -> Credential:
    return Credential(provider=Provider.ANTHROPIC, secret="sk-ant-0123456789")
