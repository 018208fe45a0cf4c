"""Marker elements that visually realise a highlight in the tree.

Markers are ``<span>`` elements carrying ``MARKER_CLASS``; the data
attribute ties a marker back to its anchor id.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from highlightkeeper.anchoring.tree import descendants, element, text

if TYPE_CHECKING:
    from collections.abc import Iterator

    from highlightkeeper.anchoring.tree import Document, TreeNode

MARKER_TAG = "span"
MARKER_CLASS = "highlightkeeper-mark"
MARKER_ID_ATTR = "data-highlight-id"
MARKER_STYLE_TEMPLATE = "background-color: {color}"

DEFAULT_COLOR = "rgba(255, 230, 0, 0.5)"


def make_marker(anchor_id: str, color: str) -> TreeNode:
    """Create an empty marker element for *anchor_id*."""
    marker = element(MARKER_TAG)
    marker.attributes["class"] = MARKER_CLASS
    marker.attributes[MARKER_ID_ATTR] = anchor_id
    marker.attributes["style"] = MARKER_STYLE_TEMPLATE.format(color=color)
    return marker


def is_marker(node: TreeNode) -> bool:
    return not node.is_text and node.attributes.get("class") == MARKER_CLASS


def iter_markers(
    document: Document, anchor_id: str | None = None
) -> Iterator[TreeNode]:
    """Yield markers in document order, optionally only those for *anchor_id*."""
    for node in descendants(document, document.document_element):
        if not is_marker(node):
            continue
        if anchor_id is None or node.attributes.get(MARKER_ID_ATTR) == anchor_id:
            yield node


def _merge_text_run(node: TreeNode) -> TreeNode:
    """Merge *node* with its adjacent text siblings, like ``Node.normalize``."""
    parent = node.parent
    if parent is None:
        return node
    siblings = parent.children
    start = end = node.index()
    while start > 0 and siblings[start - 1].is_text:
        start -= 1
    while end + 1 < len(siblings) and siblings[end + 1].is_text:
        end += 1

    run = siblings[start : end + 1]
    merged = run[0]
    merged.data = "".join(part.data for part in run)
    for part in run[1:]:
        part.detach()
    return merged


def unwrap_marker(marker: TreeNode) -> TreeNode:
    """Replace *marker* with its text and rejoin the surrounding text.

    Returns:
        The text node now holding the unwrapped text.
    """
    replacement = text(marker.text_content())
    marker.replace_with(replacement)
    return _merge_text_run(replacement)


def set_marker_color(marker: TreeNode, color: str) -> None:
    marker.attributes["style"] = MARKER_STYLE_TEMPLATE.format(color=color)
