"""
LLM-based translation backends.

This module provides:
- OpenAI GPT translator (GPT-4o and compatible endpoints)
- Anthropic Claude translator

Both receive segments that may contain placeholder spans; the system
prompt instructs the model to copy them through untouched and to keep the
Markdown structure (headings, list markers, blank lines) intact.
"""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass
from typing import Optional

from mdtrans.errors import ConfigurationError, TranslationBackendError
from mdtrans.keys import get_key
from mdtrans.translate.base import (
    Translator,
    TranslationResult,
    TranslationContext,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """Configuration for LLM translators."""
    model: str = "gpt-4o"
    temperature: float = 0.2
    max_tokens: int = 4096
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0


class BaseLLMTranslator(Translator, ABC):
    """Base class for LLM-based translators.

    Provides common functionality:
    - Prompt construction
    - Response parsing
    """

    service = ""

    def __init__(self, config: Optional[LLMConfig] = None, api_key: Optional[str] = None):
        self.config = config or LLMConfig()
        self.api_key = api_key or self.config.api_key or get_key(self.service)
        if not self.api_key:
            raise ConfigurationError(
                f"{self.service} API key required. Run 'mdtrans keys set {self.service}' "
                "or pass api_key parameter."
            )
        self._client = None

    def build_system_prompt(self, context: Optional[TranslationContext] = None) -> str:
        """Build the system prompt for translation."""
        context = context or TranslationContext()
        prompt_parts = [
            "You are an expert translator specializing in technical documentation.",
            f"Translate Markdown text from {context.source_lang} to {context.target_lang}.",
            "",
            "## Critical Rules:",
            '1. Copy every <span translate="no">...</span> element exactly as it appears',
            "2. Keep the Markdown structure: headings, list markers, tables, line breaks",
            "3. Do not translate {#...} heading ids",
            "4. Do not add explanations or notes - only provide the translation",
        ]
        return "\n".join(prompt_parts)

    def build_user_prompt(self, text: str) -> str:
        """Build the user prompt with text to translate."""
        return f"Translate the following text:\n\n{text}"

    def parse_response(self, response: str) -> str:
        """Parse and clean the LLM response."""
        cleaned = response.strip()

        # Remove a code fence wrapped around the whole answer
        if cleaned.startswith("```"):
            lines = cleaned.split("\n")
            if lines[-1].strip() == "```":
                lines = lines[1:-1]
            else:
                lines = lines[1:]
            cleaned = "\n".join(lines)

        prefixes = ["Translation:", "Translated text:", "Here is the translation:"]
        for prefix in prefixes:
            if cleaned.lower().startswith(prefix.lower()):
                cleaned = cleaned[len(prefix):].strip()

        return cleaned


class OpenAITranslator(BaseLLMTranslator):
    """OpenAI GPT-based translator.

    Usage:
        translator = OpenAITranslator(config=LLMConfig(model="gpt-4o"))
        result = await translator.translate("Hello world", context)
    """

    service = "openai"

    @property
    def name(self) -> str:
        return f"openai-{self.config.model}"

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "OpenAI library required. Install with: pip install openai"
                )

            kwargs = {"api_key": self.api_key, "timeout": self.config.timeout}
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = AsyncOpenAI(**kwargs)

        return self._client

    async def translate(
        self,
        text: str,
        context: Optional[TranslationContext] = None,
    ) -> TranslationResult:
        """Translate text using OpenAI API."""
        client = self._get_client()
        messages = [
            {"role": "system", "content": self.build_system_prompt(context)},
            {"role": "user", "content": self.build_user_prompt(text)},
        ]
        try:
            response = await client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as e:
            raise TranslationBackendError(f"OpenAI translation failed: {e}") from e

        translated = self.parse_response(response.choices[0].message.content or "")
        logger.debug("openai %s: %d -> %d chars", self.config.model, len(text), len(translated))
        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "model": self.config.model},
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class AnthropicTranslator(BaseLLMTranslator):
    """Anthropic Claude translator."""

    service = "anthropic"

    def __init__(self, config: Optional[LLMConfig] = None, api_key: Optional[str] = None):
        super().__init__(config or LLMConfig(model="claude-3-5-sonnet-20241022"), api_key)

    @property
    def name(self) -> str:
        return f"anthropic-{self.config.model}"

    def _get_client(self):
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise ImportError(
                    "Anthropic library required. Install with: pip install anthropic"
                )
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.config.timeout)
        return self._client

    async def translate(
        self,
        text: str,
        context: Optional[TranslationContext] = None,
    ) -> TranslationResult:
        """Translate text using Anthropic API."""
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                system=self.build_system_prompt(context),
                messages=[
                    {"role": "user", "content": self.build_user_prompt(text)},
                ],
            )
        except Exception as e:
            raise TranslationBackendError(f"Anthropic translation failed: {e}") from e

        translated = self.parse_response(response.content[0].text if response.content else "")
        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "model": self.config.model},
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
