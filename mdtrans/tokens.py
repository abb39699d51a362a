"""
Token estimation for the translation budget.

Counts are produced by a tiktoken encoding. Callers must treat the count
as opaque: it is deterministic, but it is neither proportional to the
character length nor guaranteed to shrink when the text shrinks.
"""

from __future__ import annotations

from functools import lru_cache

import tiktoken

from mdtrans.config import TIKTOKEN_ENCODING


@lru_cache(maxsize=None)
def _get_encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


class TokenEstimator:
    """Callable token counter bound to one tiktoken encoding.

    Usage:
        estimate = TokenEstimator()
        estimate("Hello world")  # -> 2
    """

    def __init__(self, encoding_name: str = TIKTOKEN_ENCODING):
        self.encoding_name = encoding_name

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        encoding = _get_encoding(self.encoding_name)
        return len(encoding.encode(text, disallowed_special=()))

    def __repr__(self) -> str:
        return f"TokenEstimator({self.encoding_name!r})"


def estimate_tokens(text: str, encoding_name: str = TIKTOKEN_ENCODING) -> int:
    """Estimate the backend token cost of ``text``."""
    return TokenEstimator(encoding_name)(text)
