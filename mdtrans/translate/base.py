"""
Base translator interface and implementations.

This module defines:
- Abstract Translator interface that all backends implement
- DummyTranslator for testing (echo or simple transformations)
- create_translator factory

Design Philosophy:
- Translators are stateless: they receive all context in each call
- Translators are asynchronous; a call may suspend while a remote job runs
- All translators return TranslationResult with metadata
- Retrying is not a backend concern (see ``mdtrans.translate.client``)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from mdtrans.config import DEFAULT_SOURCE_LANG, DEFAULT_TARGET_LANG, GUARDED_MIME_TYPE


@dataclass
class TranslationResult:
    """Result of a translation operation.

    Attributes:
        text: The translated text
        source_text: Original source text
        metadata: Additional info (model, job id, tokens used, etc.)
    """
    text: str
    source_text: str
    metadata: dict = field(default_factory=dict)


@dataclass
class TranslationContext:
    """Per-call parameters.

    Attributes:
        source_lang: Source language code
        target_lang: Target language code
        mime_type: ``text/html`` when the text carries placeholder spans,
            ``text/plain`` otherwise
    """
    source_lang: str = DEFAULT_SOURCE_LANG
    target_lang: str = DEFAULT_TARGET_LANG
    mime_type: str = GUARDED_MIME_TYPE


class Translator(ABC):
    """Abstract base class for all translation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the translator name (e.g., 'job', 'openai', 'dummy')."""
        pass

    @abstractmethod
    async def translate(
        self,
        text: str,
        context: TranslationContext | None = None,
    ) -> TranslationResult:
        """Translate a single text segment.

        Args:
            text: Source text to translate
            context: Language pair and MIME type

        Returns:
            TranslationResult with translation and metadata

        Raises:
            TranslationBackendError: Transient failure, may be rerun
            FatalTranslationError: Failure that rerunning cannot fix
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the backend."""


class DummyTranslator(Translator):
    """A dummy translator for testing.

    Modes:
    - 'echo': Return the input unchanged
    - 'upper': Return uppercase version
    - 'prefix': Add [TRANSLATED] prefix
    """

    def __init__(self, mode: str = "echo"):
        self.mode = mode
        self.calls = 0

    @property
    def name(self) -> str:
        return f"dummy-{self.mode}"

    async def translate(
        self,
        text: str,
        context: TranslationContext | None = None,
    ) -> TranslationResult:
        self.calls += 1
        if self.mode == "echo":
            translated = text
        elif self.mode == "upper":
            translated = text.upper()
        else:  # prefix
            translated = f"[TRANSLATED] {text}"

        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "mode": self.mode},
        )


def create_translator(backend: str, **kwargs) -> Translator:
    """Factory function to create a translator by name.

    Args:
        backend: Translator backend name ('dummy', 'job', 'openai', etc.)
        **kwargs: Backend-specific arguments

    Returns:
        Configured Translator instance

    Raises:
        ConfigurationError: Credentials or identifiers are missing

    Supported backends and aliases:
        - dummy, echo, test: Simple test translator (useful for pipeline testing)
        - job, langlink: Submit-then-poll LLM pipeline service
        - openai, gpt: OpenAI chat models
        - anthropic, claude: Anthropic Claude models
    """
    backend_lower = backend.lower().replace("_", "-")

    if backend_lower in ("dummy", "echo", "test"):
        mode = kwargs.get("mode", "echo")
        return DummyTranslator(mode=mode)

    elif backend_lower in ("job", "langlink"):
        from mdtrans.translate.job import JobTranslator
        job_kwargs = {k: v for k, v in kwargs.items() if k not in ("model", "mode", "api_key", "config")}
        return JobTranslator(**job_kwargs)

    elif backend_lower in ("openai", "gpt"):
        from mdtrans.translate.llm import OpenAITranslator, LLMConfig
        config = kwargs.get("config") or LLMConfig(model=kwargs.get("model") or "gpt-4o")
        return OpenAITranslator(config=config, api_key=kwargs.get("api_key"))

    elif backend_lower in ("anthropic", "claude"):
        from mdtrans.translate.llm import AnthropicTranslator, LLMConfig
        default_model = kwargs.get("model") or "claude-3-5-sonnet-20241022"
        config = kwargs.get("config") or LLMConfig(model=default_model)
        return AnthropicTranslator(config=config, api_key=kwargs.get("api_key"))

    else:
        available = ["dummy", "job", "openai", "anthropic"]
        raise ValueError(
            f"Unknown translator backend: {backend}. "
            f"Available backends: {', '.join(available)}"
        )
