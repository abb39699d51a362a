"""
Translation client adapter.

Wraps a ``Translator`` backend with the pass-through rules and the outer
rerun loop:
- Empty input, a lone line break, a bare placeholder span, text made of
  markers only, or a lone shortcode line is returned unchanged without
  calling the backend
- Any other failure reruns the whole backend call, up to ``rerun_limit``
  reruns, without backoff
- ``FatalTranslationError`` is never rerun
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from mdtrans.config import DEFAULT_SOURCE_LANG, DEFAULT_TARGET_LANG, GUARDED_MIME_TYPE, RERUN_LIMIT
from mdtrans.errors import FatalTranslationError, MaxRerunExceeded, RetryExhausted
from mdtrans.translate.base import TranslationContext, Translator
from mdtrans.translate.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

# Inputs that need no translation
PASS_THROUGH_PATTERNS = (
    re.compile(r"\A\r?\n?\Z"),
    re.compile(r'\A<span translate="no">[0-9]+</span>\Z'),
    re.compile(r'\A(?:\s*<span translate="no">\{\{B-NOTRANSLATE-[0-9]+-NOTRANSLATE-E\}\}</span>)+\s*\Z'),
    re.compile(r"\A\{\{<[^\n]*>\}\}\r?\n?\Z"),
)


def is_pass_through(text: str) -> bool:
    return any(pattern.match(text) for pattern in PASS_THROUGH_PATTERNS)


class TranslationClient:
    """Backend wrapper used by the pipeline.

    Args:
        translator: Backend to call
        source_lang: Default source language
        target_lang: Default target language
        rerun_limit: Reruns after the first attempt
    """

    def __init__(
        self,
        translator: Translator,
        source_lang: str = DEFAULT_SOURCE_LANG,
        target_lang: str = DEFAULT_TARGET_LANG,
        rerun_limit: int = RERUN_LIMIT,
    ):
        self.translator = translator
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.rerun_limit = rerun_limit

    async def translate(
        self,
        text: str,
        mime_type: str = GUARDED_MIME_TYPE,
        source_lang: Optional[str] = None,
        target_lang: Optional[str] = None,
    ) -> str:
        """Translate one piece of text.

        Raises:
            MaxRerunExceeded: Every attempt failed
            FatalTranslationError: The backend reported a fatal error
        """
        if is_pass_through(text):
            return text

        context = TranslationContext(
            source_lang=source_lang or self.source_lang,
            target_lang=target_lang or self.target_lang,
            mime_type=mime_type,
        )

        async def attempt() -> str:
            result = await self.translator.translate(text, context)
            return result.text

        try:
            return await retry_async(
                attempt,
                RetryPolicy(max_attempts=self.rerun_limit + 1),
                give_up_on=(FatalTranslationError,),
            )
        except RetryExhausted as e:
            logger.error("Translation failed after %d attempts: %s", e.attempts, e.last_error)
            raise MaxRerunExceeded(e.attempts, e.last_error) from e.last_error

    async def aclose(self) -> None:
        await self.translator.aclose()
