"""
Core data models for MDTrans.

These models describe a Markdown document as a structural tree and the
ordered translation plan derived from it.

Design Philosophy:
- Immutable-by-convention: transformations build new nodes with
  ``Node.replace`` instead of mutating visited nodes
- Lossless: top-level blocks keep their verbatim source slice so an
  unmodified tree renders back to the exact input text
- Segments are the unit of translation and are frozen once created
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional


class NodeType(Enum):
    """Node variants of the structural tree.

    Block variants own child blocks or inline children; leaf variants
    carry a scalar ``value`` (text, code, raw markup).
    """
    DOCUMENT = auto()
    HEADING = auto()
    PARAGRAPH = auto()
    LIST = auto()
    LIST_ITEM = auto()
    TABLE = auto()
    TABLE_ROW = auto()
    TABLE_CELL = auto()
    CODE_BLOCK = auto()
    BLOCKQUOTE = auto()
    THEMATIC_BREAK = auto()
    FRONT_MATTER = auto()
    HTML_BLOCK = auto()
    # Inline variants
    TEXT = auto()
    EMPHASIS = auto()
    STRONG = auto()
    DELETE = auto()
    INLINE_CODE = auto()
    LINK = auto()
    LINK_REFERENCE = auto()
    IMAGE = auto()
    IMAGE_REFERENCE = auto()
    FOOTNOTE = auto()
    FOOTNOTE_REFERENCE = auto()
    LINE_BREAK = auto()
    RAW_INLINE = auto()


BLOCK_TYPES = frozenset({
    NodeType.HEADING,
    NodeType.PARAGRAPH,
    NodeType.LIST,
    NodeType.LIST_ITEM,
    NodeType.TABLE,
    NodeType.TABLE_ROW,
    NodeType.TABLE_CELL,
    NodeType.CODE_BLOCK,
    NodeType.BLOCKQUOTE,
    NodeType.THEMATIC_BREAK,
    NodeType.FRONT_MATTER,
    NodeType.HTML_BLOCK,
})

# Blocks whose children are inline nodes
INLINE_CONTAINER_TYPES = frozenset({
    NodeType.HEADING,
    NodeType.PARAGRAPH,
    NodeType.TABLE_CELL,
})


@dataclass
class Node:
    """A single node of the structural tree.

    Attributes:
        type: Node variant
        children: Ordered child nodes (container variants)
        value: Scalar content for leaves; for inline containers the raw
            inline source, used for rendering while it is set
        attrs: Variant specific attributes (href, title, src, markup, ...)
        level: Heading level (1-6)
        custom_id: Heading anchor, assigned once
        source: Verbatim source slice of a parsed top-level block
    """
    type: NodeType
    children: list[Node] = field(default_factory=list)
    value: str = ""
    attrs: dict = field(default_factory=dict)
    level: int = 0
    custom_id: Optional[str] = None
    source: str = field(default="", compare=False, repr=False)

    def replace(self, **changes) -> Node:
        """Return a modified copy.

        The copy drops the verbatim source (unless given explicitly), so it
        is rendered from its structure.
        """
        changes.setdefault("source", "")
        return dataclasses.replace(self, **changes)

    @property
    def is_block(self) -> bool:
        return self.type in BLOCK_TYPES

    @property
    def has_inline_children(self) -> bool:
        return self.type in INLINE_CONTAINER_TYPES

    def walk(self):
        """Yield this node and all descendants in document order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def plain_text(self) -> str:
        """Visible text of the node, without markup."""
        if self.type in (NodeType.TEXT, NodeType.RAW_INLINE, NodeType.INLINE_CODE):
            return self.value
        if self.type is NodeType.LINE_BREAK:
            return " "
        if self.type in (NodeType.FOOTNOTE_REFERENCE, NodeType.CODE_BLOCK):
            return ""
        if self.type in (NodeType.IMAGE, NodeType.IMAGE_REFERENCE) and not self.children:
            return self.attrs.get("alt", "")
        return "".join(child.plain_text() for child in self.children)


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of a document.

    ``skip`` segments (code blocks, blank-line runs, markers) bypass
    translation and are copied to the output verbatim.
    """
    content: str
    skip: bool = False

    def to_dict(self) -> dict:
        return {"content": self.content, "skip": self.skip}


@dataclass(frozen=True)
class HeadingRecord:
    """A source heading: its level and the anchor it must keep."""
    level: int
    anchor: str
    text: str = ""

    def to_dict(self) -> dict:
        return {"level": self.level, "anchor": self.anchor, "text": self.text}
