"""
Main translation pipeline for MDTrans.

This module orchestrates the complete translation workflow for one
document:
1. Split off the front matter (kept verbatim)
2. Parse the body and record its headings with their anchors
3. Split into segments under the token budget, peel blank-line runs
4. Per segment: guard placeholders, translate, restore
   (all segments concurrently, results in segment order)
5. Join the translated segments
6. Re-attach the heading anchors (fails on heading mismatch)
7. Prepend the front matter

Design Philosophy:
- Pipeline is configurable via PipelineConfig, injected at construction
- Segment translations share no mutable state
- A failing document never writes output; a failing document in a batch
  is logged and recorded, and the batch continues
- Progress callbacks for CLI integration
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from mdtrans.anchors import extract_headings, reattach_text
from mdtrans.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_SOURCE_LANG,
    DEFAULT_TARGET_LANG,
    GUARDED_MIME_TYPE,
    PLAIN_MIME_TYPE,
    RERUN_LIMIT,
    TIKTOKEN_ENCODING,
)
from mdtrans.io import (
    mirror_path,
    normalize_newlines,
    read_document,
    split_front_matter,
    strip_shortcodes,
    write_document,
)
from mdtrans.markdown import parse_markdown
from mdtrans.masking import PlaceholderMap, guard_segment, restore_text, translate_link_labels
from mdtrans.models import HeadingRecord, Segment
from mdtrans.splitter import DEFAULT_OPAQUE_TYPES, Estimator, join_segments, peel_blank_lines, split_document
from mdtrans.tokens import TokenEstimator
from mdtrans.translate.base import Translator, create_translator
from mdtrans.translate.client import TranslationClient

logger = logging.getLogger(__name__)

# Type alias for progress callbacks
ProgressCallback = Callable[[str, float], None]


@dataclass
class PipelineConfig:
    """Configuration for the translation pipeline."""
    # Translation settings
    source_lang: str = DEFAULT_SOURCE_LANG
    target_lang: str = DEFAULT_TARGET_LANG
    translator_backend: str = "dummy"  # 'dummy', 'job', 'openai', 'anthropic'
    translator_kwargs: dict = field(default_factory=dict)
    mime_type: str = GUARDED_MIME_TYPE
    label_mime_type: str = PLAIN_MIME_TYPE
    rerun_limit: int = RERUN_LIMIT
    poll_deadline: Optional[float] = None  # Seconds; job backend default when None

    # Segmentation settings
    max_tokens: int = DEFAULT_MAX_TOKENS
    encoding_name: str = TIKTOKEN_ENCODING
    estimator: Optional[Estimator] = None  # Overrides encoding_name
    opaque_types: frozenset = DEFAULT_OPAQUE_TYPES

    # Documents translated at the same time in a batch
    max_workers: int = 1

    # Stages
    enable_masking: bool = True
    enable_anchors: bool = True

    # Output fix-ups
    self_closing_br: bool = False
    strip_shortcodes: bool = False

    def to_dict(self) -> dict:
        """Serialize config for logging/debugging."""
        return {
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "translator_backend": self.translator_backend,
            "mime_type": self.mime_type,
            "rerun_limit": self.rerun_limit,
            "poll_deadline": self.poll_deadline,
            "max_tokens": self.max_tokens,
            "encoding_name": self.encoding_name,
            "opaque_types": sorted(t.name for t in self.opaque_types),
            "max_workers": self.max_workers,
            "enable_masking": self.enable_masking,
            "enable_anchors": self.enable_anchors,
            "self_closing_br": self.self_closing_br,
            "strip_shortcodes": self.strip_shortcodes,
        }


@dataclass
class PipelineResult:
    """Result of translating one document.

    Attributes:
        text: Translated document, front matter included
        segments: Translation plan the text was produced from
        headings: Source heading records
        stats: Counters (segments, translated, skipped, placeholders)
    """
    text: str
    segments: list[Segment] = field(default_factory=list)
    headings: list[HeadingRecord] = field(default_factory=list)
    stats: dict = field(default_factory=dict)


@dataclass
class DocumentFailure:
    """A document of a batch that could not be translated."""
    path: Path
    reason: str
    error: Exception


@dataclass
class BatchResult:
    """Outcome of a batch run."""
    translated: list[Path] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.failures) == 0


async def gather_ordered(aws: Iterable[Awaitable]) -> list:
    """``asyncio.gather`` that cancels the siblings of a failing task."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class TranslationPipeline:
    """Main translation pipeline orchestrating all components.

    Usage:
        config = PipelineConfig(translator_backend="job")
        pipeline = TranslationPipeline(config)

        result = await pipeline.translate_text("# Hello\\n\\nWorld\\n")
        print(result.text)

    Args:
        config: Pipeline configuration
        client: Ready translation client (built from the config when None)
        translator: Backend for the client built from the config
        progress_callback: Called with (message, fraction)

    Raises:
        ConfigurationError: The configured backend lacks credentials
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        client: TranslationClient | None = None,
        translator: Translator | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        self.config = config or PipelineConfig()
        self.progress_callback = progress_callback or (lambda msg, pct: None)
        self.estimate = self.config.estimator or TokenEstimator(self.config.encoding_name)

        if client is None:
            translator_kwargs = dict(self.config.translator_kwargs)
            if self.config.poll_deadline is not None:
                translator_kwargs.setdefault("poll_deadline", self.config.poll_deadline)
            translator = translator or create_translator(
                self.config.translator_backend,
                **translator_kwargs,
            )
            client = TranslationClient(
                translator,
                source_lang=self.config.source_lang,
                target_lang=self.config.target_lang,
                rerun_limit=self.config.rerun_limit,
            )
        self.client = client

    def plan(self, body: str, env: Optional[dict] = None) -> list[Segment]:
        """Segments of a document body, blank-line runs peeled off."""
        document = parse_markdown(body, env)
        segments = split_document(
            document,
            max_tokens=self.config.max_tokens,
            estimate=self.estimate,
            opaque_types=self.config.opaque_types,
        )
        return [piece for segment in segments for piece in peel_blank_lines(segment)]

    async def _translate_piece(self, segment: Segment, env: dict) -> tuple[str, int]:
        """Translate one segment; returns (text, placeholder count)."""
        if segment.skip:
            return segment.content, 0

        if self.config.enable_masking:
            # Private copy: parsing adds the segment's own definitions
            guarded = guard_segment(segment.content, {"references": dict(env.get("references", {}))})
            text, placeholders = guarded.text, guarded.placeholders
        else:
            text, placeholders = segment.content, PlaceholderMap()

        if placeholders:
            placeholders = await translate_link_labels(
                placeholders,
                lambda label: self.client.translate(label, self.config.label_mime_type),
            )

        translated = await self.client.translate(text, self.config.mime_type)
        return restore_text(translated, placeholders, self.config.self_closing_br), len(placeholders)

    async def translate_text(self, text: str) -> PipelineResult:
        """Translate a Markdown document.

        Raises:
            HeadingAlignmentError: Translated headings do not match the source
            PlaceholderIntegrityError: A marker was invented or dropped
            SegmentTooLargeError: A unit cannot be brought under the budget
            MaxRerunExceeded: The backend kept failing
        """
        text = normalize_newlines(text)
        if self.config.strip_shortcodes:
            text = strip_shortcodes(text)
        front_matter, body = split_front_matter(text)

        self.progress_callback("Parsing document...", 0.05)
        env: dict = {}
        document = parse_markdown(body, env)
        records = extract_headings(document) if self.config.enable_anchors else []
        segments = self.plan(body, env)
        translatable = sum(1 for segment in segments if not segment.skip)

        self.progress_callback(f"Translating {translatable} segments...", 0.1)
        done = 0

        async def run(segment: Segment) -> tuple[str, int]:
            nonlocal done
            result = await self._translate_piece(segment, env)
            if not segment.skip:
                done += 1
                self.progress_callback(
                    f"Translated segment {done}/{translatable}",
                    0.1 + 0.8 * done / max(translatable, 1),
                )
            return result

        results = await gather_ordered(run(segment) for segment in segments)
        translated = join_segments(content for content, _ in results)

        if self.config.enable_anchors:
            self.progress_callback("Re-attaching heading anchors...", 0.95)
            translated = reattach_text(translated, records)

        self.progress_callback("Complete!", 1.0)
        return PipelineResult(
            text=front_matter + translated,
            segments=segments,
            headings=records,
            stats={
                "segments": len(segments),
                "translated_segments": translatable,
                "skipped_segments": len(segments) - translatable,
                "placeholders": sum(count for _, count in results),
                "headings": len(records),
                "front_matter": bool(front_matter),
            },
        )

    async def translate_file(self, src: Path, dst: Path) -> PipelineResult:
        """Translate ``src`` into ``dst``; nothing is written on failure."""
        result = await self.translate_text(read_document(src))
        write_document(dst, result.text)
        logger.info("Translated %s -> %s", src, dst)
        return result

    async def translate_batch(
        self,
        paths: Iterable[Path],
        input_root: Path,
        output_root: Path,
    ) -> BatchResult:
        """Translate many documents into a mirrored output tree.

        At most ``config.max_workers`` documents are in flight. A failing
        document is logged with its path and reason and recorded in the
        result; the others still run.
        """
        paths = list(paths)
        batch = BatchResult()
        semaphore = asyncio.Semaphore(max(1, self.config.max_workers))

        async def run(path: Path) -> None:
            async with semaphore:
                dst = mirror_path(path, input_root, output_root)
                try:
                    await self.translate_file(path, dst)
                except Exception as e:
                    logger.error("Failed to translate %s: %s", path, e)
                    batch.failures.append(DocumentFailure(path, f"{type(e).__name__}: {e}", e))
                else:
                    batch.translated.append(path)
                finished = len(batch.translated) + len(batch.failures)
                self.progress_callback(f"{finished}/{len(paths)} documents", finished / max(len(paths), 1))

        await asyncio.gather(*(run(path) for path in paths))
        return batch

    async def aclose(self) -> None:
        await self.client.aclose()


# ============================================================================
# Convenience Functions
# ============================================================================

def translate_markdown(
    text: str,
    source_lang: str = DEFAULT_SOURCE_LANG,
    target_lang: str = DEFAULT_TARGET_LANG,
    backend: str = "dummy",
    **config_kwargs,
) -> str:
    """Quick translation of a Markdown string.

    This is the simplest API:

        result = translate_markdown("# Hello", backend="openai")

    For more control, use TranslationPipeline directly.
    """
    config = PipelineConfig(
        source_lang=source_lang,
        target_lang=target_lang,
        translator_backend=backend,
        **config_kwargs,
    )

    async def run() -> str:
        pipeline = TranslationPipeline(config)
        try:
            return (await pipeline.translate_text(text)).text
        finally:
            await pipeline.aclose()

    return asyncio.run(run())
