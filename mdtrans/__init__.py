"""
MDTrans: structure-preserving translation of Markdown documentation.

Documents are parsed into a structural tree, split into segments under a
translation-provider token budget, translated with non-translatable spans
(links, code, images, footnotes) protected by placeholders, and
reassembled with their heading anchors re-attached.
"""

__version__ = "0.1.0"

from mdtrans.models import Node, NodeType, Segment, HeadingRecord
from mdtrans.pipeline import TranslationPipeline, PipelineConfig, PipelineResult

__all__ = [
    "Node",
    "NodeType",
    "Segment",
    "HeadingRecord",
    "TranslationPipeline",
    "PipelineConfig",
    "PipelineResult",
]
