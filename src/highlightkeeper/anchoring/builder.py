"""Turn a live text selection into a durable Anchor.

The builder performs exactly one tree mutation: wrapping the selection in a
marker element.  Everything that depends on the pre-wrap tree shape (the
start/end container addresses, the offsets and the surrounding context) is
captured before the wrap happens.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.errors import WrapFailure
from highlightkeeper.anchoring.markers import make_marker
from highlightkeeper.anchoring.models import TEXT_FRAGMENT_LENGTH, Anchor, new_anchor_id
from highlightkeeper.anchoring.path_codec import encode_address
from highlightkeeper.anchoring.ranges import TextRange, surround_contents
from highlightkeeper.anchoring.text_locator import find_nodes_containing

if TYPE_CHECKING:
    from highlightkeeper.anchoring.models import StructuralAddress
    from highlightkeeper.anchoring.tree import Document, TreeNode

logger = logging.getLogger(__name__)


def select_text(
    document: Document, needle: str, occurrence: int = 0
) -> TextRange | None:
    """Build a selection over the *occurrence*-th text node containing *needle*.

    Convenience for callers that identify a highlight by its text instead of
    by live boundary points (CLI, tests).  Returns None when there are fewer
    matching text nodes than requested.
    """
    for index, node in enumerate(find_nodes_containing(document, needle)):
        if index == occurrence:
            start = node.data.index(needle)
            return TextRange(node, start, node, start + len(needle))
    return None


def context_text(container: TreeNode) -> str:
    """Text of the selection start's immediate container."""
    if container.is_text:
        return container.parent.text_content() if container.parent else ""
    return container.text_content()


def _character_offsets(selection: TextRange, selected_text: str) -> tuple[int, int]:
    """Offsets of the selection within the start container's text.

    Inside one text node these are the range offsets.  Otherwise the end is
    derived from the selected text's length, clamped to the container, so
    both offsets always index the same string.
    """
    container = selection.start_container
    if container.is_text:
        start = selection.start_offset
        limit = len(container.data)
        if selection.end_container is container:
            return start, selection.end_offset
    else:
        start = sum(
            len(child.text_content())
            for child in container.children[: selection.start_offset]
        )
        limit = len(container.text_content())
    return start, min(start + len(selected_text), limit)


class AnchorBuilder:
    """Creates anchors for one document.

    Args:
        document: The live tree that selections point into.
        identity: Document identity stored on every anchor.
        fragment_length: Characters of text kept per text address step.
    """

    def __init__(
        self,
        document: Document,
        identity: str,
        *,
        fragment_length: int = TEXT_FRAGMENT_LENGTH,
    ) -> None:
        self.document = document
        self.identity = identity
        self.fragment_length = fragment_length

    def _encode(self, node: TreeNode) -> StructuralAddress:
        return encode_address(
            self.document, node, fragment_length=self.fragment_length
        )

    def build(
        self,
        selection: TextRange,
        *,
        color: str,
        anchor_id: str | None = None,
    ) -> Anchor | None:
        """Wrap *selection* in a marker and describe it as an Anchor.

        Returns:
            The new Anchor, or None if the selection is empty or cannot be
            wrapped (the tree is not modified in either case).
        """
        selected_text = selection.text()
        if not selected_text.strip():
            logger.debug("Ignoring empty selection")
            return None

        # Captured before wrapping: the wrap changes the tree shape
        start_address = self._encode(selection.start_container)
        end_address = self._encode(selection.end_container)
        context = context_text(selection.start_container)
        start_offset, end_offset = _character_offsets(selection, selected_text)

        anchor_id = anchor_id or new_anchor_id()
        marker = make_marker(anchor_id, color)
        try:
            surround_contents(selection, marker)
        except WrapFailure as exc:
            logger.warning("Cannot highlight selection %r: %s", selected_text[:50], exc)
            return None

        anchor = Anchor(
            id=anchor_id,
            document=self.identity,
            selected_text=selected_text,
            context=context,
            primary_address=self._encode(marker),
            start_container_address=start_address,
            end_container_address=end_address,
            start_offset=start_offset,
            end_offset=end_offset,
            color=color,
        )
        logger.info("Created highlight %s (%d chars)", anchor.id, len(selected_text))
        return anchor
