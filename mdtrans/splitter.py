"""
Structural splitter: partitions a document into translation segments.

Segments respect the token budget of one translation call and never cut
through a structural atom:
- Top-level blocks are batched in document order
- Opaque blocks (code blocks by default) are emitted alone as ``skip``
  segments and are never subdivided
- A single block over budget is bisected at heading boundaries, then at
  line boundaries

Concatenating the contents of the returned segments reproduces the
serialized document exactly.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional

from mdtrans.config import DEFAULT_MAX_TOKENS
from mdtrans.errors import SegmentTooLargeError
from mdtrans.markdown import render_blocks, render_markdown
from mdtrans.models import Node, NodeType, Segment
from mdtrans.tokens import TokenEstimator

Estimator = Callable[[str], int]

DEFAULT_OPAQUE_TYPES = frozenset({NodeType.CODE_BLOCK})

# Zero-width separators, tried in order
HEADING_BOUNDARY = re.compile(r"^(?=#{1,6}(?:[ \t]|$))", re.MULTILINE)
LINE_BOUNDARY = re.compile(r"(?<=\n)(?=[^\n])")
SEPARATORS = (HEADING_BOUNDARY, LINE_BOUNDARY)


def split_document(
    document: Node,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    estimate: Optional[Estimator] = None,
    opaque_types: frozenset = DEFAULT_OPAQUE_TYPES,
) -> list[Segment]:
    """Split a parsed document into ordered segments.

    Args:
        document: DOCUMENT node from ``parse_markdown``
        max_tokens: Token budget of one segment
        estimate: Token counter (tiktoken based by default)
        opaque_types: Top-level node types that bypass translation

    Returns:
        Segments in document order

    Raises:
        SegmentTooLargeError: A unit over budget cannot be subdivided
    """
    estimate = estimate or TokenEstimator()
    text = render_markdown(document)
    if estimate(text) < max_tokens:
        return [Segment(text)]

    if not document.children:
        return [Segment(piece) for piece in bisect_text(text, max_tokens, estimate)]

    segments: list[Segment] = []
    batch: list[str] = []

    def flush() -> None:
        if batch:
            segments.append(Segment("".join(batch)))
            batch.clear()

    for child in document.children:
        child_text = render_blocks([child])
        if child.type in opaque_types:
            flush()
            segments.append(Segment(child_text, skip=True))
            continue

        if estimate("".join(batch) + child_text) <= max_tokens:
            batch.append(child_text)
            continue

        flush()
        if estimate(child_text) > max_tokens:
            segments.extend(Segment(piece) for piece in bisect_text(child_text, max_tokens, estimate))
        else:
            batch.append(child_text)

    flush()
    return segments


def bisect_text(text: str, max_tokens: int, estimate: Estimator) -> list[str]:
    """Recursively halve ``text`` until every piece fits the budget.

    The text is cut at heading boundaries when it holds at least two
    headed sections, otherwise at line boundaries, and halved by piece
    count. Concatenating the result gives back ``text``.
    """
    tokens = estimate(text)
    if tokens <= max_tokens:
        return [text]

    for separator in SEPARATORS:
        pieces = [piece for piece in separator.split(text) if piece]
        if sum(1 for piece in pieces if piece.strip()) >= 2:
            break
    else:
        raise SegmentTooLargeError(text, tokens, max_tokens)

    middle = len(pieces) // 2
    return (
        bisect_text("".join(pieces[:middle]), max_tokens, estimate)
        + bisect_text("".join(pieces[middle:]), max_tokens, estimate)
    )


def peel_blank_lines(segment: Segment) -> list[Segment]:
    """Move leading/trailing blank-line runs into their own skip pieces.

    Providers normalize whitespace around a call, so the runs are kept out
    of the request and joined back positionally.
    """
    content = segment.content
    if segment.skip or not content:
        return [segment]
    if not content.strip("\n"):
        return [Segment(content, skip=True)]

    head = len(content) - len(content.lstrip("\n"))
    end = len(content.rstrip("\n"))
    pieces = []
    if head:
        pieces.append(Segment(content[:head], skip=True))
    pieces.append(Segment(content[head:end]))
    if end < len(content):
        pieces.append(Segment(content[end:], skip=True))
    return pieces


def join_segments(contents: Iterable[str]) -> str:
    """Reassemble segment contents in order."""
    return "".join(contents)
