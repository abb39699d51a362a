"""
Document source and sink.

Reads and writes UTF-8 Markdown files, mirrors input trees into output
trees, and splits off the front matter block, which is reattached to the
translated body verbatim.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# YAML (---) or TOML (+++) block at the very start of a file
FRONT_MATTER_RE = re.compile(
    r"\A(---|\+\+\+)[ \t]*\n(?:.*?\n)?\1[ \t]*(?:\n|\Z)",
    re.DOTALL,
)

# Deprecated shortcode line, removed before translation
COPYABLE_RE = re.compile(r"\{\{< copyable\s+(.+)\s+>\}\}\r?\n")

DEFAULT_SHORTCODES = (COPYABLE_RE,)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_front_matter(text: str) -> tuple[str, str]:
    """Split a document into (front matter, body).

    The front matter includes its closing delimiter line; it is "" when
    the document has none. ``front + body == text``.
    """
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return "", text
    return match.group(0), text[match.end():]


def strip_shortcodes(text: str, patterns: Optional[Iterable[re.Pattern]] = None) -> str:
    """Remove shortcode lines matching ``patterns`` (copyable by default)."""
    for pattern in patterns or DEFAULT_SHORTCODES:
        text = pattern.sub("", text)
    return text


def find_markdown_files(root: Path) -> list[Path]:
    """All ``*.md`` files below ``root`` (or ``root`` itself), sorted."""
    root = Path(root)
    if root.is_file():
        return [root]
    return sorted(path for path in root.rglob("*.md") if path.is_file())


def read_document(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_document(path: Path, text: str) -> Path:
    """Write UTF-8 text, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.debug("Wrote %s (%d chars)", path, len(text))
    return path


def mirror_path(src: Path, input_root: Path, output_root: Path) -> Path:
    """Location of ``src`` under ``output_root``, keeping its path below ``input_root``.

    Example:
        >>> mirror_path(Path("docs/a/b.md"), Path("docs"), Path("out"))
        PosixPath('out/a/b.md')
    """
    src, input_root = Path(src), Path(input_root)
    if input_root.is_file() or src == input_root:
        return Path(output_root) / src.name
    return Path(output_root) / src.relative_to(input_root)
