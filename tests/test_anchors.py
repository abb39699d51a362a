"""
Tests for heading anchors.

Tests cover:
- Anchor slugs and explicit {#id} suffixes
- Heading records extracted from a source document
- Re-attaching anchors to translated headings
- Alignment errors on heading count or level mismatch
"""

import pytest

from mdtrans.anchors import (
    assign_anchors,
    compute_anchor,
    extract_headings,
    reattach_text,
    strip_anchor,
)
from mdtrans.errors import HeadingAlignmentError
from mdtrans.markdown import parse_markdown, render_markdown
from mdtrans.models import HeadingRecord


SOURCE = (
    "# Title\n"
    "\n"
    "## Sub *x*\n"
    "\n"
    "text\n"
    "\n"
    "### Done {#done-id}\n"
)


class TestComputeAnchor:
    """Test anchor slugs."""

    @pytest.mark.parametrize("text,expected", [
        (" Hello World! ", "hello-world"),
        ("A---B", "a-b"),
        ("Hello, World!  Foo_Bar", "hello-world-foo_bar"),
        ("Already {#custom-id}", "custom-id"),
        ("Überblick", "überblick"),
    ])
    def test_compute_anchor(self, text, expected):
        """Slugs are lowercase words joined by hyphens."""
        assert compute_anchor(text) == expected

    def test_strip_anchor(self):
        """An explicit suffix is removed."""
        assert strip_anchor("Title {#id}") == "Title"
        assert strip_anchor("Title") == "Title"


class TestExtractHeadings:
    """Test heading records."""

    def test_records_in_order(self):
        """Each top-level heading yields a record."""
        records = extract_headings(parse_markdown(SOURCE))
        assert [r.level for r in records] == [1, 2, 3]
        assert [r.anchor for r in records] == ["title", "sub-x", "done-id"]
        assert records[2].text == "Done"

    def test_assign_anchors_keeps_source(self):
        """Assigning ids does not change the rendered document."""
        document = assign_anchors(parse_markdown(SOURCE))
        headings = [c for c in document.children if c.custom_id]
        assert [h.custom_id for h in headings] == ["title", "sub-x", "done-id"]
        assert render_markdown(document) == SOURCE


class TestReattach:
    """Test re-attaching anchors to translated output."""

    def test_suffixes_headings(self):
        """Every heading ends with its source anchor."""
        records = extract_headings(parse_markdown(SOURCE))
        assert reattach_text(SOURCE, records) == (
            "# Title {#title}\n"
            "\n"
            "## Sub *x* {#sub-x}\n"
            "\n"
            "text\n"
            "\n"
            "### Done {#done-id}\n"
        )

    def test_translated_headings_keep_source_anchor(self):
        """Anchors come from the source, not the translated text."""
        records = [HeadingRecord(1, "getting-started"), HeadingRecord(2, "install")]
        translated = "# Premiers pas\n\nTexte.\n\n## Installation\n"
        assert reattach_text(translated, records) == (
            "# Premiers pas {#getting-started}\n\nTexte.\n\n## Installation {#install}\n"
        )

    def test_idempotent(self):
        """Re-anchoring anchored output changes nothing."""
        records = extract_headings(parse_markdown(SOURCE))
        once = reattach_text(SOURCE, records)
        again = reattach_text(once, extract_headings(parse_markdown(once)))
        assert again == once

    def test_missing_heading(self):
        """A dropped heading is reported with its index."""
        records = [HeadingRecord(1, "a", "A"), HeadingRecord(2, "b", "B")]
        with pytest.raises(HeadingAlignmentError) as exc_info:
            reattach_text("# Only one\n\ntext\n", records)
        assert exc_info.value.index == 1
        assert exc_info.value.expected_level == 2
        assert exc_info.value.actual_level is None

    def test_level_mismatch(self):
        """A heading whose level changed is reported."""
        records = [HeadingRecord(1, "a", "A"), HeadingRecord(2, "b", "B")]
        with pytest.raises(HeadingAlignmentError) as exc_info:
            reattach_text("# A\n\n# B\n", records)
        assert exc_info.value.index == 1
        assert exc_info.value.actual_level == 1

    def test_extra_heading(self):
        """A heading invented by the translation is reported."""
        with pytest.raises(HeadingAlignmentError) as exc_info:
            reattach_text("# A\n\n## New\n", [HeadingRecord(1, "a", "A")])
        assert exc_info.value.expected_level is None
