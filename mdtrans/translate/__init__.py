"""
Translation backends and the client that drives them.

Submodules:
- base: Translator interface, DummyTranslator, create_translator factory
- client: TranslationClient with pass-through rules and rerun loop
- retry: Bounded retry combinator (tenacity)
- job: Submit-then-poll job service backend (httpx)
- llm: OpenAI and Anthropic backends
"""

from mdtrans.translate.base import (
    Translator,
    TranslationResult,
    TranslationContext,
    DummyTranslator,
    create_translator,
)
from mdtrans.translate.client import TranslationClient
from mdtrans.translate.retry import RetryPolicy, retry_async

__all__ = [
    "Translator",
    "TranslationResult",
    "TranslationContext",
    "DummyTranslator",
    "create_translator",
    "TranslationClient",
    "RetryPolicy",
    "retry_async",
]
