"""
Markdown parsing and rendering.

Parsing is delegated to markdown-it-py (CommonMark plus GFM tables and
strikethrough); its token stream is converted into the ``Node`` tree of
``mdtrans.models``.

Rendering works in two modes:
- Parsed top-level blocks that were not modified render from their
  verbatim source slice, so ``render_markdown(parse_markdown(text))``
  returns ``text`` unchanged
- Modified or synthesized nodes render from their structure

Reference links keep their label (markdown-it's ``store_labels``) so they
can be told apart from inline links. Footnote references (``[^1]``) and
inline footnotes (``^[...]``) are recognised inside text runs.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional

from markdown_it import MarkdownIt
from markdown_it.common.utils import normalizeReference
from markdown_it.tree import SyntaxTreeNode

from mdtrans.models import Node, NodeType

_NEWLINE_RE = re.compile(r"\r\n?")
_FOOTNOTE_RE = re.compile(r"(\[\^[^\]\s]+\]|\^\[[^\]]*\])")
_ALIGN_RE = re.compile(r"text-align:\s*(left|right|center)")

_DEFAULT_MARKUP = {
    NodeType.EMPHASIS: "*",
    NodeType.STRONG: "**",
    NodeType.DELETE: "~~",
}

_ALIGN_MARKERS = {"left": ":---", "right": "---:", "center": ":---:"}


@lru_cache(maxsize=1)
def get_parser() -> MarkdownIt:
    """Shared markdown-it instance (CommonMark + tables + strikethrough).

    ``text_join`` is disabled so escapes and entities stay distinguishable
    from plain text.
    """
    parser = MarkdownIt("commonmark", {"store_labels": True})
    # Link targets are rendered back as written, not percent-encoded
    parser.normalizeLink = _keep_url
    parser.normalizeLinkText = _keep_url
    return parser.enable(["table", "strikethrough"]).disable("text_join")


def _keep_url(url: str) -> str:
    return url


def normalize_newlines(text: str) -> str:
    """Normalize line endings the way markdown-it does before tokenizing."""
    return _NEWLINE_RE.sub("\n", text).replace("\x00", "�")


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    result = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        result.append(lines[-1])
    return result


# ============================================================================
# Parsing
# ============================================================================

def parse_markdown(text: str, env: Optional[dict] = None) -> Node:
    """Parse Markdown text into a DOCUMENT node.

    Args:
        text: Markdown source (line endings are normalized to ``\\n``)
        env: Optional markdown-it environment. Pass the environment of the
            whole document when parsing one of its segments so reference
            links resolve against definitions found elsewhere.

    Returns:
        DOCUMENT node whose top-level children carry their source slice.
        Blank lines and reference definitions between blocks belong to the
        preceding block, lines before the first block to the first one.
    """
    text = normalize_newlines(text)
    tokens = get_parser().parse(text, {} if env is None else env)
    blocks = SyntaxTreeNode(tokens).children
    lines = _split_lines(text)

    children = []
    for index, block in enumerate(blocks):
        start, end = block.map
        next_start = blocks[index + 1].map[0] if index + 1 < len(blocks) else len(lines)
        first = 0 if index == 0 else start
        end = min(end, next_start)
        content = "".join(lines[start:end])

        node = _convert_block(block)
        node.attrs["leading"] = "".join(lines[first:start])
        node.attrs["trailing"] = content[len(content.rstrip()):] + "".join(lines[end:next_start])
        node.source = "".join(lines[first:next_start])
        children.append(node)

    return Node(NodeType.DOCUMENT, children=children, source=text)


def _convert_block(tree: SyntaxTreeNode) -> Node:
    kind = tree.type
    if kind == "paragraph":
        return _inline_container(NodeType.PARAGRAPH, tree)
    if kind == "heading":
        node = _inline_container(NodeType.HEADING, tree)
        node.level = int(tree.tag[1:])
        node.attrs["markup"] = tree.markup
        return node
    if kind in ("bullet_list", "ordered_list"):
        ordered = kind == "ordered_list"
        return Node(
            NodeType.LIST,
            children=[_convert_block(child) for child in tree.children],
            attrs={
                "ordered": ordered,
                "start": int(tree.attrGet("start") or 1),
                "markup": tree.markup,
                "tight": _is_tight(tree),
            },
        )
    if kind == "list_item":
        return Node(
            NodeType.LIST_ITEM,
            children=[_convert_block(child) for child in tree.children],
            attrs={"markup": tree.markup, "info": tree.info},
        )
    if kind == "blockquote":
        return Node(
            NodeType.BLOCKQUOTE,
            children=[_convert_block(child) for child in tree.children],
        )
    if kind == "table":
        rows = []
        for section in tree.children:
            for row in section.children:
                rows.append(_convert_row(row, header=section.type == "thead"))
        return Node(NodeType.TABLE, children=rows)
    if kind in ("fence", "code_block"):
        return Node(
            NodeType.CODE_BLOCK,
            value=tree.content,
            attrs={"fenced": kind == "fence", "info": tree.info, "markup": tree.markup},
        )
    if kind == "hr":
        return Node(NodeType.THEMATIC_BREAK, attrs={"markup": tree.markup})
    return Node(NodeType.HTML_BLOCK, value=tree.content)


def _is_tight(tree: SyntaxTreeNode) -> bool:
    for item in tree.children:
        for child in item.children:
            if child.type == "paragraph":
                return bool(child.hidden)
    return True


def _convert_row(row: SyntaxTreeNode, header: bool) -> Node:
    cells = []
    for cell in row.children:
        node = _inline_container(NodeType.TABLE_CELL, cell)
        node.attrs["header"] = header
        match = _ALIGN_RE.search(str(cell.attrGet("style") or ""))
        node.attrs["align"] = match.group(1) if match else None
        cells.append(node)
    return Node(NodeType.TABLE_ROW, children=cells, attrs={"header": header})


def _inline_container(node_type: NodeType, tree: SyntaxTreeNode) -> Node:
    inline = tree.children[0] if tree.children else None
    if inline is None:
        return Node(node_type)
    return Node(node_type, children=convert_inline(inline.children), value=inline.content)


def convert_inline(nodes: Iterable[SyntaxTreeNode]) -> list[Node]:
    """Convert markdown-it inline syntax nodes into inline ``Node``s.

    Escapes and entities (``text_special``) keep their source spelling and
    are merged with the surrounding text, so a text run renders back to
    the same Markdown it was parsed from.
    """
    result: list[Node] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            result.extend(_split_footnotes("".join(pending)))
            pending.clear()

    for tree in nodes:
        kind = tree.type
        if kind == "text":
            pending.append(tree.content)
            continue
        if kind == "text_special":
            pending.append(tree.markup or tree.content)
            continue

        flush()
        if kind == "softbreak":
            result.append(Node(NodeType.LINE_BREAK, attrs={"soft": True}))
        elif kind == "hardbreak":
            result.append(Node(NodeType.LINE_BREAK, attrs={"soft": False}))
        elif kind == "em":
            result.append(_convert_mark(NodeType.EMPHASIS, tree))
        elif kind == "strong":
            result.append(_convert_mark(NodeType.STRONG, tree))
        elif kind == "s":
            result.append(_convert_mark(NodeType.DELETE, tree))
        elif kind == "code_inline":
            result.append(Node(
                NodeType.INLINE_CODE,
                value=tree.content,
                attrs={"markup": tree.markup},
            ))
        elif kind == "link":
            result.append(_convert_link(tree))
        elif kind == "image":
            result.append(_convert_image(tree))
        else:
            # html_inline and anything an extension may add
            result.append(Node(NodeType.RAW_INLINE, value=tree.content))
    flush()
    return result


def _convert_mark(node_type: NodeType, tree: SyntaxTreeNode) -> Node:
    return Node(node_type, children=convert_inline(tree.children), attrs={"markup": tree.markup})


def _convert_link(tree: SyntaxTreeNode) -> Node:
    attrs = {"href": tree.attrGet("href") or ""}
    if tree.attrGet("title"):
        attrs["title"] = tree.attrGet("title")
    children = convert_inline(tree.children)

    if tree.markup == "autolink":
        attrs["autolink"] = True
        return Node(NodeType.LINK, children=children, attrs=attrs)

    label = tree.meta.get("label")
    if label:
        if label.startswith("^"):
            return Node(NodeType.FOOTNOTE_REFERENCE, value=label[1:], attrs=attrs)
        attrs["label"] = label
        return Node(NodeType.LINK_REFERENCE, children=children, attrs=attrs)
    return Node(NodeType.LINK, children=children, attrs=attrs)


def _convert_image(tree: SyntaxTreeNode) -> Node:
    attrs = {"src": tree.attrGet("src") or "", "alt": tree.content}
    if tree.attrGet("title"):
        attrs["title"] = tree.attrGet("title")
    children = convert_inline(tree.children)
    label = tree.meta.get("label")
    if label:
        attrs["label"] = label
        return Node(NodeType.IMAGE_REFERENCE, children=children, attrs=attrs)
    return Node(NodeType.IMAGE, children=children, attrs=attrs)


def _split_footnotes(text: str) -> list[Node]:
    nodes = []
    for part in _FOOTNOTE_RE.split(text):
        if not part:
            continue
        if _FOOTNOTE_RE.fullmatch(part):
            node_type = NodeType.FOOTNOTE_REFERENCE if part.startswith("[^") else NodeType.FOOTNOTE
            nodes.append(Node(node_type, value=part[2:-1]))
        else:
            nodes.append(Node(NodeType.TEXT, value=part))
    return nodes


# ============================================================================
# Rendering
# ============================================================================

def render_markdown(node: Node) -> str:
    """Render a node (usually a DOCUMENT) back to Markdown text."""
    if node.source:
        return node.source
    if node.type is NodeType.DOCUMENT:
        return render_blocks(node.children)
    if node.is_block:
        return _render_top_level(node)
    return render_inline([node])


def render_blocks(nodes: Iterable[Node]) -> str:
    """Render a run of top-level blocks as they appear in a document."""
    return "".join(_render_top_level(node) for node in nodes)


def _render_top_level(node: Node) -> str:
    if node.source:
        return node.source
    return node.attrs.get("leading", "") + _render_block(node) + node.attrs.get("trailing", "\n")


def _render_block(node: Node) -> str:
    kind = node.type
    if kind is NodeType.PARAGRAPH:
        return _inline_text(node)
    if kind is NodeType.HEADING:
        text = _inline_text(node)
        marker = "#" * (node.level or 1)
        return f"{marker} {text}" if text else marker
    if kind is NodeType.CODE_BLOCK:
        return _render_code_block(node)
    if kind is NodeType.THEMATIC_BREAK:
        return node.attrs.get("markup") or "---"
    if kind in (NodeType.HTML_BLOCK, NodeType.FRONT_MATTER):
        return node.value.rstrip("\n")
    if kind is NodeType.BLOCKQUOTE:
        body = _join_blocks(node.children)
        return "\n".join("> " + line if line else ">" for line in body.split("\n"))
    if kind is NodeType.LIST:
        return _render_list(node)
    if kind is NodeType.LIST_ITEM:
        return _render_list_item(node, node.attrs.get("markup") or "-", tight=True)
    if kind is NodeType.TABLE:
        return _render_table(node)
    if kind is NodeType.TABLE_ROW:
        return _render_row(node)
    if kind is NodeType.TABLE_CELL:
        return _cell_text(node)
    if kind is NodeType.DOCUMENT:
        return render_blocks(node.children).rstrip("\n")
    return render_inline([node])


def _inline_text(node: Node) -> str:
    return node.value if node.value else render_inline(node.children)


def _join_blocks(nodes: list[Node], tight: bool = False) -> str:
    return ("\n" if tight else "\n\n").join(_render_block(node) for node in nodes)


def _render_code_block(node: Node) -> str:
    value = node.value
    if node.attrs.get("fenced", True):
        markup = node.attrs.get("markup") or "```"
        info = node.attrs.get("info") or ""
        if value and not value.endswith("\n"):
            value += "\n"
        return f"{markup}{info}\n{value}{markup}"
    return "\n".join("    " + line if line else "" for line in value.rstrip("\n").split("\n"))


def _render_list(node: Node) -> str:
    ordered = node.attrs.get("ordered", False)
    start = node.attrs.get("start", 1)
    markup = node.attrs.get("markup") or ("." if ordered else "-")
    tight = node.attrs.get("tight", True)
    items = []
    for index, item in enumerate(node.children):
        marker = f"{start + index}{markup}" if ordered else markup
        items.append(_render_list_item(item, marker, tight))
    return ("\n" if tight else "\n\n").join(items)


def _render_list_item(item: Node, marker: str, tight: bool) -> str:
    lines = _join_blocks(item.children, tight).split("\n")
    indent = " " * (len(marker) + 1)
    first = f"{marker} {lines[0]}" if lines[0] else marker
    return "\n".join([first] + [indent + line if line else "" for line in lines[1:]])


def _render_table(node: Node) -> str:
    if not node.children:
        return ""
    rows = [_render_row(row) for row in node.children]
    header = node.children[0]
    delimiter = "| " + " | ".join(
        _ALIGN_MARKERS.get(cell.attrs.get("align"), "---") for cell in header.children
    ) + " |"
    return "\n".join([rows[0], delimiter] + rows[1:])


def _render_row(row: Node) -> str:
    return "| " + " | ".join(_cell_text(cell) for cell in row.children) + " |"


def _cell_text(cell: Node) -> str:
    if cell.value:
        return cell.value.replace("|", "\\|")
    return render_inline(cell.children, table=True)


def render_inline(nodes: Iterable[Node], table: bool = False) -> str:
    """Render inline nodes back to Markdown.

    Args:
        nodes: Inline nodes
        table: Escape ``|`` in text runs (content of a table cell)
    """
    return "".join(_render_inline_node(node, table) for node in nodes)


def _render_inline_node(node: Node, table: bool) -> str:
    kind = node.type
    if kind is NodeType.TEXT:
        return node.value.replace("|", "\\|") if table else node.value
    if kind is NodeType.RAW_INLINE:
        return node.value
    if kind is NodeType.LINE_BREAK:
        return "\n" if node.attrs.get("soft", True) else "\\\n"
    if kind in _DEFAULT_MARKUP:
        markup = node.attrs.get("markup") or _DEFAULT_MARKUP[kind]
        return markup + render_inline(node.children, table) + markup
    if kind is NodeType.INLINE_CODE:
        return _render_code_span(node)
    if kind is NodeType.LINK:
        if node.attrs.get("autolink"):
            return f"<{render_inline(node.children)}>"
        label = render_inline(node.children, table)
        return f"[{label}]({_destination(node.attrs.get('href', ''))}{_title(node)})"
    if kind is NodeType.LINK_REFERENCE:
        return _reference(render_inline(node.children, table), node)
    if kind is NodeType.IMAGE:
        alt = render_inline(node.children, table) if node.children else node.attrs.get("alt", "")
        return f"![{alt}]({_destination(node.attrs.get('src', ''))}{_title(node)})"
    if kind is NodeType.IMAGE_REFERENCE:
        alt = render_inline(node.children, table) if node.children else node.attrs.get("alt", "")
        return "!" + _reference(alt, node)
    if kind is NodeType.FOOTNOTE_REFERENCE:
        return f"[^{node.value}]"
    if kind is NodeType.FOOTNOTE:
        return f"^[{node.value}]"
    if node.is_block:
        return _render_block(node)
    return node.value


def _reference(text: str, node: Node) -> str:
    """Shortcut form while the text still names the label, full form otherwise."""
    label = node.attrs.get("label", "")
    if normalizeReference(text) == label:
        return f"[{text}]"
    return f"[{text}][{label}]"


def _render_code_span(node: Node) -> str:
    markup = node.attrs.get("markup") or "`"
    value = node.value
    pad = ""
    if value.startswith("`") or value.endswith("`") or (
        value.startswith(" ") and value.endswith(" ") and value.strip()
    ):
        pad = " "
    return f"{markup}{pad}{value}{pad}{markup}"


def _destination(href: str) -> str:
    if any(char in href for char in " <>") or href.count("(") != href.count(")"):
        return f"<{href}>"
    return href


def _title(node: Node) -> str:
    title = node.attrs.get("title")
    if not title:
        return ""
    escaped = title.replace('"', '\\"')
    return f' "{escaped}"'
