"""
Comprehensive tests for the placeholder guard.

Tests cover:
- Marker format
- Guarding links, code spans, images and footnotes
- Restoring originals from translated text
- Tolerance for rewritten marker spans
- Integrity errors for invented or dropped markers
- Link label translation
"""

import asyncio

import pytest

from mdtrans.errors import PlaceholderIntegrityError
from mdtrans.markdown import parse_markdown, render_inline
from mdtrans.masking import (
    PlaceholderMap,
    guard,
    guard_segment,
    make_marker,
    normalize_markers,
    restore_text,
    translate_link_labels,
    unguard,
)
from mdtrans.models import Node, NodeType


PARAGRAPH = "Read the [guide](http://x.com) or run `make` now ![logo](l.png) end"


def _link_map(href="http://x.com", label="guide"):
    placeholders = PlaceholderMap()
    placeholders.register(Node(NodeType.LINK, children=[Node(NodeType.TEXT, value=label)], attrs={"href": href}))
    return placeholders


class TestMarkerFormat:
    """Test marker spelling."""

    def test_make_marker(self):
        """Markers are indexed spans the provider leaves alone."""
        assert make_marker(3) == '<span translate="no">{{B-NOTRANSLATE-3-NOTRANSLATE-E}}</span>'

    def test_normalize_markers(self):
        """Span and bare spellings reduce to the canonical form."""
        text = (
            "<SPAN translate='no'> {{B-NOTRANSLATE-0-NOTRANSLATE-E}} </SPAN> "
            "{{B-NOTRANSLATE-1-NOTRANSLATE-E}}"
        )
        assert normalize_markers(text) == (
            "{{B-PLACEHOLDER-0-PLACEHOLDER-E}} {{B-PLACEHOLDER-1-PLACEHOLDER-E}}"
        )

    def test_numbered_span(self):
        """A span around a bare index is read as that marker."""
        assert normalize_markers('a <span translate="no">2</span> b') == (
            "a {{B-PLACEHOLDER-2-PLACEHOLDER-E}} b"
        )


class TestGuard:
    """Test guarding of translatable units."""

    def test_protected_nodes_replaced(self):
        """Links, code spans and images become markers in encounter order."""
        paragraph = parse_markdown(PARAGRAPH).children[0]
        guarded, placeholders = guard(paragraph)
        text = render_inline(guarded.children)

        assert len(placeholders) == 3
        assert placeholders.get(0).type is NodeType.LINK
        assert placeholders.get(1).type is NodeType.INLINE_CODE
        assert placeholders.get(2).type is NodeType.IMAGE
        assert text == f"Read the {make_marker(0)} or run {make_marker(1)} now {make_marker(2)} end"

    def test_guard_then_unguard_is_identity(self):
        """Unguarding untranslated text gives back the original children."""
        paragraph = parse_markdown(PARAGRAPH).children[0]
        guarded, placeholders = guard(paragraph)
        assert unguard(render_inline(guarded.children), placeholders) == paragraph.children

    def test_guard_descends_into_marks(self):
        """Links inside emphasis are guarded too."""
        paragraph = parse_markdown("*see [a](u)*").children[0]
        guarded, placeholders = guard(paragraph)
        assert len(placeholders) == 1
        assert render_inline(guarded.children) == f"*see {make_marker(0)}*"

    def test_footnotes_guarded(self):
        """Footnote references are protected."""
        paragraph = parse_markdown("Claim[^1].").children[0]
        _, placeholders = guard(paragraph)
        assert placeholders.get(0).type is NodeType.FOOTNOTE_REFERENCE

    def test_original_unit_untouched(self):
        """Guarding builds a copy."""
        paragraph = parse_markdown(PARAGRAPH).children[0]
        before = list(paragraph.children)
        guard(paragraph)
        assert paragraph.children == before


class TestGuardSegment:
    """Test guarding of whole segments."""

    def test_plain_segment_unchanged(self):
        """A segment without protected content is sent as is."""
        guarded = guard_segment("Just *words* here.\n")
        assert guarded.text == "Just *words* here.\n"
        assert len(guarded.placeholders) == 0

    def test_list_items_guarded(self):
        """Units nested in lists are found and numbered across the segment."""
        text = "- see [a](u)\n- run `x`\n"
        guarded = guard_segment(text)
        assert "(u)" not in guarded.text
        assert "`x`" not in guarded.text
        assert len(guarded.placeholders) == 2
        assert restore_text(guarded.text, guarded.placeholders) == text

    def test_heading_anchor_suffix_protected(self):
        """An explicit {#id} on a heading is not sent for translation."""
        guarded = guard_segment("# Title {#custom}\n")
        assert "{#custom}" not in guarded.text
        assert restore_text(guarded.text, guarded.placeholders) == "# Title {#custom}\n"

    def test_reference_resolved_with_env(self):
        """Reference links resolve against definitions outside the segment."""
        env = {}
        parse_markdown("Intro [docs].\n\n[docs]: http://x.com\n", env)
        guarded = guard_segment("See [docs].\n", {"references": dict(env["references"])})
        assert guarded.placeholders.get(0).type is NodeType.LINK_REFERENCE

    def test_reference_definitions_protected(self):
        """Definition lines are hidden from the provider and restored verbatim."""
        text = "See [docs].\n\n[docs]: http://x.com\n"
        guarded = guard_segment(text)
        assert "http://x.com" not in guarded.text
        assert restore_text(guarded.text, guarded.placeholders) == text

    def test_definitions_only_segment(self):
        """A segment of definitions only becomes markers only."""
        guarded = guard_segment("[docs]: http://x.com")
        assert guarded.text == make_marker(0)
        assert restore_text(guarded.text, guarded.placeholders) == "[docs]: http://x.com"

    def test_code_block_not_guarded(self):
        """Code blocks keep their content."""
        text = "```\n[a](u)\n```\n"
        assert guard_segment(text).text == text


class TestRestore:
    """Test restoring originals into translated text."""

    def test_restores_translated_text(self):
        """Translated runs are kept, markers swapped for originals."""
        translated = f"Lisez le {make_marker(0)} maintenant"
        assert restore_text(translated, _link_map()) == "Lisez le [guide](http://x.com) maintenant"

    def test_rewritten_span_tolerated(self):
        """Providers that rewrite quotes or spacing are tolerated."""
        translated = "Lisez <span translate='no'> {{B-NOTRANSLATE-0-NOTRANSLATE-E}} </span>."
        assert restore_text(translated, _link_map()) == "Lisez [guide](http://x.com)."

    def test_bare_marker_tolerated(self):
        """A marker whose span wrapper was dropped is still restored."""
        translated = "Lisez {{B-NOTRANSLATE-0-NOTRANSLATE-E}}."
        assert restore_text(translated, _link_map()) == "Lisez [guide](http://x.com)."

    def test_unknown_index_raises(self):
        """A marker the map does not know is an integrity error."""
        translated = f"Lisez {make_marker(0)} {make_marker(5)}"
        with pytest.raises(PlaceholderIntegrityError) as exc_info:
            unguard(translated, _link_map())
        assert exc_info.value.index == 5
        assert exc_info.value.raw_output == translated

    def test_dropped_marker_raises(self):
        """A stored node whose marker vanished is an integrity error."""
        with pytest.raises(PlaceholderIntegrityError) as exc_info:
            unguard("Lisez le guide", _link_map())
        assert exc_info.value.index == 0

    def test_self_closing_br(self):
        """<br> is rewritten for MDX consumers on request."""
        assert restore_text("a<br>b", PlaceholderMap(), self_closing_br=True) == "a<br/>b"
        assert restore_text("a<br>b", PlaceholderMap()) == "a<br>b"


class TestLinkLabels:
    """Test separate translation of link labels."""

    def test_label_translated_target_kept(self):
        """Only the visible label goes through translation."""
        async def upper(label):
            return label.upper()

        placeholders = _link_map()
        placeholders.register(Node(NodeType.INLINE_CODE, value="make"))
        translated = asyncio.run(translate_link_labels(placeholders, upper))

        assert render_inline([translated.get(0)]) == "[GUIDE](http://x.com)"
        assert translated.get(1) == Node(NodeType.INLINE_CODE, value="make")
        assert render_inline([placeholders.get(0)]) == "[guide](http://x.com)"

    def test_autolink_not_translated(self):
        """Autolinks show their target and stay as they are."""
        calls = []

        async def record(label):
            calls.append(label)
            return label

        placeholders = PlaceholderMap()
        placeholders.register(Node(
            NodeType.LINK,
            children=[Node(NodeType.TEXT, value="http://x.com")],
            attrs={"href": "http://x.com", "autolink": True},
        ))
        asyncio.run(translate_link_labels(placeholders, record))
        assert calls == []
