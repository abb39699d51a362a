"""
Shared fixtures for the MDTrans test suite.

Token counts are made with a whitespace word counter so no test needs
the tiktoken encoding files; translation backends are in-process fakes.
"""

import asyncio

import pytest

from mdtrans.errors import TranslationBackendError
from mdtrans.keys import KeyManager, SERVICES
from mdtrans.translate.base import TranslationResult, Translator


def word_count(text: str) -> int:
    """Deterministic stand-in for the tiktoken estimator."""
    return len(text.split())


class StubTranslator(Translator):
    """Applies ``fn`` to every request and records the requests."""

    def __init__(self, fn=None, delay=None):
        self.fn = fn or (lambda text: text)
        self.delay = delay
        self.calls = []

    @property
    def name(self) -> str:
        return "stub"

    async def translate(self, text, context=None):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay(text))
        return TranslationResult(text=self.fn(text), source_text=text)


class FlakyTranslator(Translator):
    """Fails ``failures`` times, then echoes."""

    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or TranslationBackendError("temporary outage")
        self.attempts = 0

    @property
    def name(self) -> str:
        return "flaky"

    async def translate(self, text, context=None):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return TranslationResult(text=text, source_text=text)


@pytest.fixture
def estimate():
    return word_count


@pytest.fixture
def key_manager(tmp_path, monkeypatch):
    """KeyManager on a scratch config dir, no keychain, no env."""
    for env_var in SERVICES.values():
        monkeypatch.delenv(env_var, raising=False)
    return KeyManager(config_dir=tmp_path / "config", use_keyring=False)
