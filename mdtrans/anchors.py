"""
Heading anchors.

Every source heading gets a stable id, computed once from its source text
(or taken from an explicit ``{#id}`` suffix), and carried through
translation as a ``HeadingRecord``. After translation the headings of the
output are recovered with the Markdown parser, aligned 1:1 with the
records, and re-suffixed with the original ids so deep links survive.
"""

from __future__ import annotations

import re
from typing import Optional

from mdtrans.errors import HeadingAlignmentError
from mdtrans.markdown import parse_markdown, render_inline, render_markdown
from mdtrans.models import HeadingRecord, Node, NodeType

# Explicit id at the end of a heading: "Title {#custom-id}"
ANCHOR_SUFFIX_RE = re.compile(r"\s*\{#([^}\s]+)\}\s*$")

_NON_WORD_RE = re.compile(r"\W+")


def compute_anchor(text: str) -> str:
    """Slug for a heading text.

    An explicit trailing ``{#id}`` is reused verbatim, so anchoring is
    idempotent.

    Examples:
        >>> compute_anchor(" Hello World! ")
        'hello-world'
        >>> compute_anchor("Already {#custom-id}")
        'custom-id'
    """
    match = ANCHOR_SUFFIX_RE.search(text)
    if match:
        return match.group(1)
    return _NON_WORD_RE.sub("-", text.strip().lower()).strip("-")


def strip_anchor(text: str) -> str:
    """Remove an explicit ``{#id}`` suffix."""
    return ANCHOR_SUFFIX_RE.sub("", text).rstrip()


def heading_text(heading: Node) -> str:
    """Raw inline Markdown of a heading."""
    return heading.value if heading.value else render_inline(heading.children)


def headings_of(document: Node) -> list[Node]:
    return [child for child in document.children if child.type is NodeType.HEADING]


def extract_headings(document: Node) -> list[HeadingRecord]:
    """Heading records of the top-level headings, in document order."""
    records = []
    for heading in headings_of(document):
        text = heading.plain_text()
        records.append(HeadingRecord(
            level=heading.level,
            anchor=heading.custom_id or compute_anchor(text),
            text=strip_anchor(text).strip(),
        ))
    return records


def assign_anchors(document: Node) -> Node:
    """Return a copy of ``document`` whose headings carry ``custom_id``.

    Headings that already have an id keep it. Sources are preserved, so
    the copy still renders to the original text.
    """
    children = []
    for child in document.children:
        if child.type is NodeType.HEADING and child.custom_id is None:
            child = child.replace(custom_id=compute_anchor(child.plain_text()), source=child.source)
        children.append(child)
    return document.replace(children=children, source=document.source)


def reattach(document: Node, records: list[HeadingRecord]) -> Node:
    """Suffix the headings of a translated document with their anchors.

    Args:
        document: Parsed translated document
        records: Heading records of the source document

    Returns:
        New document whose i-th heading ends with ``{#records[i].anchor}``

    Raises:
        HeadingAlignmentError: Heading count or level differs from the source
    """
    headings = headings_of(document)
    for index in range(max(len(headings), len(records))):
        record: Optional[HeadingRecord] = records[index] if index < len(records) else None
        heading: Optional[Node] = headings[index] if index < len(headings) else None
        if record is None or heading is None or heading.level != record.level:
            raise HeadingAlignmentError(
                index,
                record.level if record else None,
                record.text if record else "",
                heading.level if heading else None,
                heading_text(heading) if heading else "",
            )

    anchors = iter(records)
    children = []
    for child in document.children:
        if child.type is NodeType.HEADING:
            record = next(anchors)
            text = f"{strip_anchor(heading_text(child))} {{#{record.anchor}}}".lstrip()
            child = child.replace(
                value=text,
                children=[Node(NodeType.RAW_INLINE, value=text)],
                custom_id=record.anchor,
            )
        children.append(child)
    return document.replace(children=children)


def reattach_text(text: str, records: list[HeadingRecord], env: Optional[dict] = None) -> str:
    """Parse translated Markdown, re-anchor its headings and render it."""
    return render_markdown(reattach(parse_markdown(text, env), records))
