"""
Placeholder guard for non-translatable inline content.

Before a segment is sent to translation, links, inline code, images and
footnotes are swapped for indexed markers:

    <span translate="no">{{B-NOTRANSLATE-0-NOTRANSLATE-E}}</span>

The original nodes are kept in a ``PlaceholderMap`` and put back after
translation by matching marker indices. Providers that honour
``translate="no"`` leave the markers alone; the restorer also accepts a
marker whose span wrapper was rewritten or lost.

Design:
- One map per translatable segment, indices in encounter order
- Links keep their target verbatim; only the visible label is translated,
  in a separate call
- A marker the map does not know, or a map entry whose marker is gone,
  is an integrity error carrying the raw provider output
"""

from __future__ import annotations

import asyncio
import copy
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from mdtrans.anchors import ANCHOR_SUFFIX_RE
from mdtrans.errors import PlaceholderIntegrityError
from mdtrans.markdown import parse_markdown, render_inline, render_markdown
from mdtrans.models import Node, NodeType

PROTECTED_TYPES = frozenset({
    NodeType.LINK,
    NodeType.LINK_REFERENCE,
    NodeType.INLINE_CODE,
    NodeType.IMAGE,
    NodeType.IMAGE_REFERENCE,
    NodeType.FOOTNOTE,
    NodeType.FOOTNOTE_REFERENCE,
})

# Inline marks the guard descends into
MARK_TYPES = frozenset({NodeType.EMPHASIS, NodeType.STRONG, NodeType.DELETE})

# Link variants whose label is translated separately
LABELED_TYPES = frozenset({NodeType.LINK, NodeType.LINK_REFERENCE})


@dataclass
class PlaceholderMap:
    """Ordered ``index -> original node`` mapping of one segment.

    Modelled on a registry: ``register`` stores a deep copy and hands out
    the next index.
    """
    entries: dict[int, Node] = field(default_factory=dict)

    def register(self, node: Node) -> int:
        index = len(self.entries)
        self.entries[index] = copy.deepcopy(node)
        return index

    def get(self, index: int) -> Optional[Node]:
        return self.entries.get(index)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, index: int) -> bool:
        return index in self.entries


@dataclass
class GuardedSegment:
    """A segment ready for translation and the nodes its markers stand for."""
    text: str
    placeholders: PlaceholderMap


# ============================================================================
# Marker Formats
# ============================================================================

def make_marker(index: int) -> str:
    """Marker as sent to the provider."""
    return f'<span translate="no">{{{{B-NOTRANSLATE-{index}-NOTRANSLATE-E}}}}</span>'


def canonical_marker(index: int) -> str:
    return f"{{{{B-PLACEHOLDER-{index}-PLACEHOLDER-E}}}}"


_INNER = r"\{\{\s*B-NOTRANSLATE-(\d+)-NOTRANSLATE-E\s*\}\}"

# Span wrapper with tolerance for rewritten quotes, spacing and case
SPAN_MARKER_RE = re.compile(
    r"<span\s+translate\s*=\s*[\"']?no[\"']?\s*>\s*" + _INNER + r"\s*</span\s*>",
    re.IGNORECASE,
)
# Span around a bare index
NUMBERED_SPAN_RE = re.compile(
    r"<span\s+translate\s*=\s*[\"']?no[\"']?\s*>\s*(\d+)\s*</span\s*>",
    re.IGNORECASE,
)
# Marker whose wrapper was dropped
BARE_MARKER_RE = re.compile(_INNER, re.IGNORECASE)

CANONICAL_MARKER_RE = re.compile(r"\{\{B-PLACEHOLDER-(\d+)-PLACEHOLDER-E\}\}")


# ============================================================================
# Guarding
# ============================================================================

def _needs_guard(node: Node) -> bool:
    if node.type is NodeType.HEADING and _anchor_split(node.children):
        return True
    for child in node.children:
        if child.type in PROTECTED_TYPES:
            return True
        if child.type in MARK_TYPES and _needs_guard(child):
            return True
    return False


def _anchor_split(children: list[Node]) -> Optional[tuple[str, str]]:
    """Split an explicit ``{#id}`` off the last text run of a heading."""
    if not children or children[-1].type is not NodeType.TEXT:
        return None
    match = ANCHOR_SUFFIX_RE.search(children[-1].value)
    if not match:
        return None
    value = children[-1].value
    return value[:match.start()], value[match.start():]


def _guard_children(children: list[Node], placeholders: PlaceholderMap) -> list[Node]:
    guarded = []
    for child in children:
        if child.type in PROTECTED_TYPES:
            index = placeholders.register(child)
            guarded.append(Node(NodeType.RAW_INLINE, value=make_marker(index)))
        elif child.type in MARK_TYPES and _needs_guard(child):
            guarded.append(child.replace(children=_guard_children(child.children, placeholders)))
        else:
            guarded.append(child)
    return guarded


def guard(unit: Node, placeholders: Optional[PlaceholderMap] = None) -> tuple[Node, PlaceholderMap]:
    """Replace the protected inline children of a translatable unit.

    Args:
        unit: Paragraph, heading or table cell
        placeholders: Map to extend (a new one when omitted)

    Returns:
        (guarded copy of ``unit``, placeholder map)
    """
    if placeholders is None:
        placeholders = PlaceholderMap()

    children = _guard_children(unit.children, placeholders)
    if unit.type is NodeType.HEADING:
        split = _anchor_split(children)
        if split:
            text, suffix = split
            index = placeholders.register(Node(NodeType.TEXT, value=suffix))
            children = children[:-1] + [
                Node(NodeType.TEXT, value=text),
                Node(NodeType.RAW_INLINE, value=make_marker(index)),
            ]
    return unit.replace(children=children, value=""), placeholders


def _guard_block(node: Node, placeholders: PlaceholderMap) -> Node:
    if node.has_inline_children:
        if not _needs_guard(node):
            return node
        guarded, _ = guard(node, placeholders)
        return guarded

    if not node.children or node.type is NodeType.CODE_BLOCK:
        return node
    children = [_guard_block(child, placeholders) for child in node.children]
    if all(new is old for new, old in zip(children, node.children)):
        return node
    return node.replace(children=children)


def _guard_gap(gap: str, placeholders: PlaceholderMap) -> str:
    """Protect the reference definitions found between blocks."""
    body = gap.strip("\n")
    if not body.strip():
        return gap
    start = gap.index(body)
    index = placeholders.register(Node(NodeType.RAW_INLINE, value=body))
    return gap[:start] + make_marker(index) + gap[start + len(body):]


def guard_segment(text: str, env: Optional[dict] = None) -> GuardedSegment:
    """Guard every translatable unit of a segment.

    Lists, blockquotes and tables are searched for units; markers are
    numbered across the whole segment. Reference definitions are
    protected as a whole. Blocks without protected content keep their
    source text.

    Args:
        text: Segment content
        env: markdown-it environment of the whole document (reference
            definitions)
    """
    document = parse_markdown(text, env)
    placeholders = PlaceholderMap()
    if not document.children:
        return GuardedSegment(_guard_gap(text, placeholders), placeholders)

    children = []
    for child in document.children:
        leading = _guard_gap(child.attrs["leading"], placeholders)
        guarded = _guard_block(child, placeholders)
        trailing = _guard_gap(child.attrs["trailing"], placeholders)
        if guarded is not child:
            guarded = guarded.replace(attrs={**guarded.attrs, "leading": leading, "trailing": trailing})
        elif leading != child.attrs["leading"] or trailing != child.attrs["trailing"]:
            core = child.source[len(child.attrs["leading"]):len(child.source) - len(child.attrs["trailing"])]
            guarded = child.replace(source=leading + core + trailing)
        children.append(guarded)

    if not placeholders:
        return GuardedSegment(text, placeholders)
    return GuardedSegment(render_markdown(document.replace(children=children)), placeholders)


async def translate_link_labels(
    placeholders: PlaceholderMap,
    translate_label: Callable[[str], Awaitable[str]],
) -> PlaceholderMap:
    """Translate the visible labels of guarded links.

    Targets are left untouched; the returned map holds links rebuilt as
    ``[translated-label](href)``. Autolinks and empty labels are kept as is.
    """
    async def _label(index: int, node: Node) -> tuple[int, Node]:
        label = render_inline(node.children)
        if node.type not in LABELED_TYPES or node.attrs.get("autolink") or not label.strip():
            return index, node
        translated = await translate_label(label)
        return index, node.replace(children=[Node(NodeType.TEXT, value=translated)])

    results = await asyncio.gather(*(
        _label(index, node) for index, node in placeholders.entries.items()
    ))
    return PlaceholderMap(dict(results))


# ============================================================================
# Restoring
# ============================================================================

def normalize_markers(translated: str) -> str:
    """Reduce every marker spelling to the canonical form."""
    text = SPAN_MARKER_RE.sub(lambda m: canonical_marker(int(m.group(1))), translated)
    text = NUMBERED_SPAN_RE.sub(lambda m: canonical_marker(int(m.group(1))), text)
    return BARE_MARKER_RE.sub(lambda m: canonical_marker(int(m.group(1))), text)


def unguard(translated: str, placeholders: PlaceholderMap) -> list[Node]:
    """Swap markers in translated text back for the original nodes.

    Returns:
        Inline node sequence: stored originals for markers, text leaves
        for every run between them

    Raises:
        PlaceholderIntegrityError: A marker index has no entry, or an
            entry's marker is missing from the output
    """
    parts = CANONICAL_MARKER_RE.split(normalize_markers(translated))
    nodes: list[Node] = []
    seen = set()
    for position, part in enumerate(parts):
        if position % 2 == 0:
            if part:
                nodes.append(Node(NodeType.TEXT, value=part))
            continue
        index = int(part)
        original = placeholders.get(index)
        if original is None:
            raise PlaceholderIntegrityError(index, translated)
        seen.add(index)
        nodes.append(copy.deepcopy(original))

    missing = sorted(set(placeholders.entries) - seen)
    if missing:
        raise PlaceholderIntegrityError(missing[0], translated, reason="was dropped")
    return nodes


_BR_RE = re.compile(r"<br\s*>", re.IGNORECASE)


def restore_text(translated: str, placeholders: PlaceholderMap, self_closing_br: bool = False) -> str:
    """``unguard`` and render back to Markdown text.

    Args:
        self_closing_br: Rewrite ``<br>`` to ``<br/>`` (for MDX consumers)
    """
    text = render_inline(unguard(translated, placeholders))
    if self_closing_br:
        text = _BR_RE.sub("<br/>", text)
    return text
