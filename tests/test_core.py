"""
Core tests for MDTrans.

These tests verify the fundamental components work correctly:
- Node and segment models
- Error hierarchy
- Token estimation
- Credential lookup

Run with: pytest tests/test_core.py -v
"""

import pytest

from mdtrans.errors import (
    BackendHTTPError,
    ConfigurationError,
    FatalTranslationError,
    HeadingAlignmentError,
    MaxPollExceeded,
    MaxRerunExceeded,
    OutputNodeMissing,
    PlaceholderIntegrityError,
    SegmentTooLargeError,
    StructuralIntegrityError,
    TranslationBackendError,
)
from mdtrans.models import HeadingRecord, Node, NodeType, Segment
from mdtrans.tokens import TokenEstimator


class TestNodeModel:
    """Tests for the Node data model."""

    def test_replace_drops_source(self):
        """A modified copy renders from its structure."""
        node = Node(NodeType.PARAGRAPH, value="x", source="x\n")
        copy = node.replace(value="y")
        assert copy.source == ""
        assert copy.value == "y"
        assert node.value == "x"

    def test_equality_ignores_source(self):
        """Nodes compare by structure."""
        assert Node(NodeType.TEXT, value="a", source="a") == Node(NodeType.TEXT, value="a")

    def test_walk_order(self):
        """walk yields nodes depth first in document order."""
        tree = Node(NodeType.PARAGRAPH, children=[
            Node(NodeType.TEXT, value="a"),
            Node(NodeType.EMPHASIS, children=[Node(NodeType.TEXT, value="b")]),
        ])
        assert [node.type for node in tree.walk()] == [
            NodeType.PARAGRAPH, NodeType.TEXT, NodeType.EMPHASIS, NodeType.TEXT,
        ]

    def test_plain_text(self):
        """plain_text concatenates visible text."""
        tree = Node(NodeType.HEADING, children=[
            Node(NodeType.TEXT, value="Use "),
            Node(NodeType.INLINE_CODE, value="make"),
            Node(NodeType.FOOTNOTE_REFERENCE, value="1"),
        ])
        assert tree.plain_text() == "Use make"

    def test_block_flags(self):
        """Block and inline-container flags."""
        assert Node(NodeType.PARAGRAPH).is_block
        assert Node(NodeType.PARAGRAPH).has_inline_children
        assert not Node(NodeType.LIST).has_inline_children
        assert not Node(NodeType.TEXT).is_block


class TestSegmentModel:
    """Tests for segments and heading records."""

    def test_segment_frozen(self):
        """Segments cannot be modified."""
        segment = Segment("text")
        with pytest.raises(AttributeError):
            segment.content = "other"

    def test_serialization(self):
        """Segments and records serialize to dicts."""
        assert Segment("a", skip=True).to_dict() == {"content": "a", "skip": True}
        assert HeadingRecord(2, "x", "X").to_dict() == {"level": 2, "anchor": "x", "text": "X"}


class TestErrors:
    """Tests for the error hierarchy."""

    @pytest.mark.parametrize("error,family", [
        (BackendHTTPError(500, "boom", "http://x"), TranslationBackendError),
        (MaxPollExceeded(12, "job"), TranslationBackendError),
        (MaxRerunExceeded(4), TranslationBackendError),
        (OutputNodeMissing("node", "job"), FatalTranslationError),
        (HeadingAlignmentError(0, 1, "A", None, ""), StructuralIntegrityError),
        (PlaceholderIntegrityError(3, "raw"), StructuralIntegrityError),
    ])
    def test_families(self, error, family):
        """Errors belong to the family their handling depends on."""
        assert isinstance(error, family)

    def test_segment_too_large_prefix(self):
        """The error carries a short prefix of the unit."""
        error = SegmentTooLargeError("x" * 500, 2000, 1024)
        assert error.prefix == "x" * 100
        assert "2000" in str(error)

    def test_fatal_is_not_transient(self):
        """Fatal errors are not caught as backend errors."""
        assert not isinstance(OutputNodeMissing("n"), TranslationBackendError)


class TestTokenEstimator:
    """Tests for token estimation."""

    def test_empty_text(self):
        """Empty text costs nothing and needs no encoding."""
        assert TokenEstimator("no-such-encoding")("") == 0

    def test_repr(self):
        assert repr(TokenEstimator()) == "TokenEstimator('cl100k_base')"


class TestKeyManager:
    """Tests for credential lookup."""

    def test_env_wins(self, key_manager, monkeypatch):
        """Environment variables take priority over stored values."""
        key_manager.set_key("job_url", "http://stored")
        monkeypatch.setenv("MDTRANS_JOB_URL", "http://env")
        info = key_manager.get_key_info("job_url")
        assert key_manager.get_key("job_url") == "http://env"
        assert info.source == "env"

    def test_config_fallback(self, key_manager):
        """Values are stored in the config file without a keychain."""
        assert key_manager.set_key("job_app", "app-1") == "config"
        assert key_manager.get_key("job_app") == "app-1"
        assert key_manager.config_file.exists()

    def test_delete(self, key_manager):
        """Deleted values are gone."""
        key_manager.set_key("job_key", "secret")
        assert key_manager.delete_key("job_key")
        assert key_manager.get_key("job_key") is None
        assert not key_manager.delete_key("job_key")

    def test_require_key(self, key_manager):
        """Missing credentials raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="MDTRANS_JOB_ACCESS_KEY"):
            key_manager.require_key("job_key")

    def test_list_keys(self, key_manager):
        """Every known service is listed."""
        services = [info.service for info in key_manager.list_keys()]
        assert "job_url" in services
        assert "openai" in services
