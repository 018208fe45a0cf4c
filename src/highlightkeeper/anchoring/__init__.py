"""Anchor encoding and resolution over HTML document trees."""

from highlightkeeper.anchoring.builder import AnchorBuilder, select_text
from highlightkeeper.anchoring.errors import (
    AddressDecodeFailure,
    AnchorError,
    DocumentRootMissing,
    MalformedAnchor,
    ResolutionExhausted,
    UnsupportedAnchorKind,
    WrapFailure,
)
from highlightkeeper.anchoring.highlight_set import HighlightSet
from highlightkeeper.anchoring.identity import document_identity
from highlightkeeper.anchoring.models import AddressStep, Anchor, AnchorKind, NodeKind
from highlightkeeper.anchoring.path_codec import decode_address, encode_address
from highlightkeeper.anchoring.ranges import TextRange
from highlightkeeper.anchoring.resolver import (
    AnchorResolver,
    Resolution,
    ResolutionStage,
    ResolveReport,
)
from highlightkeeper.anchoring.text_locator import (
    find_by_context,
    find_nodes_containing,
)
from highlightkeeper.anchoring.tree import Document, TreeNode, TreeQuery

__all__ = [
    "AddressDecodeFailure",
    "AddressStep",
    "Anchor",
    "AnchorBuilder",
    "AnchorError",
    "AnchorKind",
    "AnchorResolver",
    "Document",
    "DocumentRootMissing",
    "HighlightSet",
    "MalformedAnchor",
    "NodeKind",
    "Resolution",
    "ResolutionExhausted",
    "ResolutionStage",
    "ResolveReport",
    "TextRange",
    "TreeNode",
    "TreeQuery",
    "UnsupportedAnchorKind",
    "WrapFailure",
    "decode_address",
    "document_identity",
    "encode_address",
    "find_by_context",
    "find_nodes_containing",
    "select_text",
]
