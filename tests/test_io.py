"""
Tests for document input/output helpers.
"""

from pathlib import Path

import pytest

from mdtrans.io import (
    find_markdown_files,
    mirror_path,
    normalize_newlines,
    read_document,
    split_front_matter,
    strip_shortcodes,
    write_document,
)


class TestFrontMatter:
    """Test front matter splitting."""

    @pytest.mark.parametrize("text,front", [
        ("---\ntitle: A\n---\n# Body\n", "---\ntitle: A\n---\n"),
        ("+++\ntitle = 'A'\n+++\nBody\n", "+++\ntitle = 'A'\n+++\n"),
        ("---\n---\nBody\n", "---\n---\n"),
        ("# No front matter\n", ""),
        ("Text\n---\nnot: front\n---\n", ""),
        ("---\nunterminated\n", ""),
    ])
    def test_split(self, text, front):
        """Front matter only at the very start, closed by its delimiter."""
        found, body = split_front_matter(text)
        assert found == front
        assert found + body == text


class TestShortcodes:
    """Test shortcode removal."""

    def test_copyable_removed(self):
        """Copyable shortcode lines are dropped."""
        text = 'Run:\n\n{{< copyable "shell-regular" >}}\n\n```\nmake\n```\n'
        assert strip_shortcodes(text) == "Run:\n\n\n```\nmake\n```\n"

    def test_other_text_untouched(self):
        """Text without shortcodes is unchanged."""
        assert strip_shortcodes("Plain {{ text }}\n") == "Plain {{ text }}\n"


class TestFiles:
    """Test reading, writing and tree mirroring."""

    def test_find_markdown_files(self, tmp_path):
        """Markdown files are found recursively and sorted."""
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "two.md").write_text("2", encoding="utf-8")
        (tmp_path / "one.md").write_text("1", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
        assert find_markdown_files(tmp_path) == [tmp_path / "b" / "two.md", tmp_path / "one.md"]

    def test_find_single_file(self, tmp_path):
        """A file argument is returned as is."""
        path = tmp_path / "one.md"
        path.write_text("1", encoding="utf-8")
        assert find_markdown_files(path) == [path]

    def test_write_creates_parents(self, tmp_path):
        """Writing creates missing directories; text is UTF-8."""
        path = write_document(tmp_path / "a" / "b" / "doc.md", "こんにちは\n")
        assert read_document(path) == "こんにちは\n"

    def test_mirror_path(self):
        """Paths below the input root are kept below the output root."""
        assert mirror_path(Path("docs/a/b.md"), Path("docs"), Path("out")) == Path("out/a/b.md")

    def test_mirror_single_file(self, tmp_path):
        """A single input file lands directly in the output directory."""
        src = tmp_path / "doc.md"
        src.write_text("x", encoding="utf-8")
        assert mirror_path(src, src, tmp_path / "out") == tmp_path / "out" / "doc.md"

    def test_normalize_newlines(self):
        """CRLF and CR become LF."""
        assert normalize_newlines("a\r\nb\rc\n") == "a\nb\nc\n"
