"""
Exception hierarchy for MDTrans.

Failures fall into four families:
- Transient backend errors, retried by the translation client
- Structural-integrity errors, fatal for the current document
- Oversized-unit errors, fatal for the current document
- Configuration errors, fatal at startup
"""

from __future__ import annotations

from typing import Optional


class MDTransError(Exception):
    """Base class for all MDTrans errors."""


class ConfigurationError(MDTransError):
    """Missing credentials or identifiers."""


# ============================================================================
# Translation backend errors
# ============================================================================

class TranslationBackendError(MDTransError):
    """A transient failure while talking to a translation backend."""


class BackendHTTPError(TranslationBackendError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"HTTP {status_code} from {url or 'backend'}: {body[:200]}")


class MaxPollExceeded(TranslationBackendError):
    """A submitted job produced no result within the poll limit."""

    def __init__(self, attempts: int, job_id: str = ""):
        self.attempts = attempts
        self.job_id = job_id
        super().__init__(f"Maximum poll attempts reached: {attempts} (job {job_id or '?'})")


class MaxRerunExceeded(TranslationBackendError):
    """Every rerun of the submit+poll cycle failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Maximum rerun attempts reached: {attempts}{detail}")


class FatalTranslationError(MDTransError):
    """A backend failure that retrying cannot fix."""


class OutputNodeMissing(FatalTranslationError):
    """The job result has no entry for the configured output node."""

    def __init__(self, node_id: str, job_id: str = ""):
        self.node_id = node_id
        self.job_id = job_id
        super().__init__(f"Output node {node_id!r} missing from result of job {job_id or '?'}")


# ============================================================================
# Document errors
# ============================================================================

class StructuralIntegrityError(MDTransError):
    """The translated output no longer matches the source structure."""


class HeadingAlignmentError(StructuralIntegrityError):
    """Translated headings do not align 1:1 with the source headings."""

    def __init__(
        self,
        index: int,
        expected_level: Optional[int],
        expected_text: str,
        actual_level: Optional[int],
        actual_text: str,
    ):
        self.index = index
        self.expected_level = expected_level
        self.expected_text = expected_text
        self.actual_level = actual_level
        self.actual_text = actual_text
        super().__init__(
            f"Heading #{index} does not match. "
            f"Source level: {expected_level}, text: {expected_text!r}; "
            f"translated level: {actual_level}, text: {actual_text!r}"
        )


class PlaceholderIntegrityError(StructuralIntegrityError):
    """A placeholder marker was invented or dropped by the backend."""

    def __init__(self, index: int, raw_output: str, reason: str = "has no original"):
        self.index = index
        self.raw_output = raw_output
        super().__init__(f"Placeholder {index} {reason}; raw output: {raw_output[:200]!r}")


class SegmentTooLargeError(MDTransError):
    """An atomic unit exceeds the token budget and cannot be split."""

    def __init__(self, content: str, tokens: int, max_tokens: int):
        self.prefix = content[:100]
        self.tokens = tokens
        self.max_tokens = max_tokens
        super().__init__(
            f"Segment of {tokens} tokens exceeds the budget of {max_tokens}: {self.prefix!r}..."
        )


class RetryExhausted(MDTransError):
    """A bounded retry loop ran out of attempts."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Gave up after {attempts} attempts{detail}")
