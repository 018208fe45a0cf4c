"""Resolve stored anchors back into live ranges and materialise them.

Resolution is a cascade; each stage runs only if the previous one found
nothing:

1. ``primary``: decode the marker's own address.
2. ``start_container``: decode the original selection start's address.
3. ``text_search``: first text node containing the selected text.
4. ``context_match``: first text node inside a container resembling the
   original surrounding context.

Offsets are then derived from how the node was found.  Anchors are
processed independently: one anchor failing never stops a batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.errors import (
    AnchorError,
    ResolutionExhausted,
    WrapFailure,
)
from highlightkeeper.anchoring.kinds import highlighter_for
from highlightkeeper.anchoring.markers import make_marker
from highlightkeeper.anchoring.path_codec import decode_address
from highlightkeeper.anchoring.ranges import (
    TextRange,
    extract_contents,
    insert_node,
    surround_contents,
)
from highlightkeeper.anchoring.text_locator import (
    DEFAULT_CONTEXT_RATIO,
    DEFAULT_TARGET_RATIO,
    find_by_context,
    find_nodes_containing,
    text_nodes,
    whitespace_tolerant_pattern,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.anchoring.tree import Document, TreeNode

logger = logging.getLogger(__name__)


class ResolutionStage(StrEnum):
    PRIMARY = "primary"
    START_CONTAINER = "start_container"
    TEXT_SEARCH = "text_search"
    CONTEXT_MATCH = "context_match"


_ADDRESS_STAGES = frozenset((ResolutionStage.PRIMARY, ResolutionStage.START_CONTAINER))


@dataclass(frozen=True)
class Resolution:
    """A live range located for an anchor, and the stage that found it."""

    range: TextRange
    stage: ResolutionStage


@dataclass
class ResolveReport:
    """Outcome of a batch resolution pass.

    Attributes:
        resolved: Anchors that were located and materialised.
        total: Number of anchors in the batch.
        failures: anchor id -> reason, for anchors that were skipped.
    """

    resolved: list[Anchor] = field(default_factory=list)
    total: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved)


def _find_in_text(node: TreeNode, needle: str) -> tuple[int, int] | None:
    """Locate *needle* in a text node, exactly first then whitespace-tolerant."""
    position = node.data.find(needle)
    if position >= 0:
        return position, position + len(needle)
    pattern = whitespace_tolerant_pattern(needle)
    if pattern is not None:
        match = pattern.search(node.data)
        if match:
            return match.start(), match.end()
    return None


class AnchorResolver:
    """Locates and materialises anchors in one document.

    Args:
        document: The live tree.
        target_ratio: Lower context-band multiplier (see ``find_by_context``).
        context_ratio: Upper context-band multiplier.
    """

    def __init__(
        self,
        document: Document,
        *,
        target_ratio: float = DEFAULT_TARGET_RATIO,
        context_ratio: float = DEFAULT_CONTEXT_RATIO,
    ) -> None:
        self.document = document
        self.target_ratio = target_ratio
        self.context_ratio = context_ratio

    # -- locating ----------------------------------------------------------

    def _locate(self, anchor: Anchor) -> tuple[TreeNode, ResolutionStage] | None:
        # An empty address decodes to the content root itself; never useful
        if anchor.primary_address:
            node = decode_address(self.document, anchor.primary_address)
            if node is not None:
                return node, ResolutionStage.PRIMARY

        if anchor.start_container_address:
            node = decode_address(self.document, anchor.start_container_address)
            if node is not None:
                logger.debug("Anchor %s: using start container address", anchor.id)
                return node, ResolutionStage.START_CONTAINER

        node = next(find_nodes_containing(self.document, anchor.selected_text), None)
        if node is not None:
            logger.debug("Anchor %s: found by text search", anchor.id)
            return node, ResolutionStage.TEXT_SEARCH

        if anchor.context:
            node = next(
                find_by_context(
                    self.document,
                    anchor.context,
                    anchor.selected_text,
                    target_ratio=self.target_ratio,
                    context_ratio=self.context_ratio,
                ),
                None,
            )
            if node is not None:
                logger.debug("Anchor %s: found by context match", anchor.id)
                return node, ResolutionStage.CONTEXT_MATCH

        return None

    def _range_within(self, node: TreeNode, anchor: Anchor) -> TextRange | None:
        """Range of the selected text inside *node*, or the whole node."""
        if node.is_text:
            span = _find_in_text(node, anchor.selected_text)
            if span is not None:
                return TextRange(node, span[0], node, span[1])
        else:
            for candidate in text_nodes(self.document, node):
                span = _find_in_text(candidate, anchor.selected_text)
                if span is not None:
                    return TextRange(candidate, span[0], candidate, span[1])

        # Last resort: highlight the whole node rather than nothing
        if node.is_text:
            if not node.data:
                return None
            return TextRange.select_node_contents(node)
        if not node.children:
            return None
        logger.info(
            "Anchor %s: highlighting entire <%s> as fallback", anchor.id, node.tag
        )
        return TextRange.select_node_contents(node)

    def resolve(self, anchor: Anchor) -> Resolution:
        """Find the live range for *anchor*.

        Raises:
            ResolutionExhausted: If no stage yields a usable range.
        """
        located = self._locate(anchor)
        if located is None:
            raise ResolutionExhausted(anchor.id)
        node, stage = located

        if stage in _ADDRESS_STAGES and node.is_text:
            length = len(node.data)
            start = min(max(anchor.start_offset, 0), length)
            end = min(max(anchor.end_offset, 0), length)
            if start < end:
                return Resolution(TextRange(node, start, node, end), stage)
            logger.debug("Anchor %s: stored offsets empty after clamping", anchor.id)

        rng = self._range_within(node, anchor)
        if rng is None:
            raise ResolutionExhausted(anchor.id)
        return Resolution(rng, stage)

    # -- materialising -----------------------------------------------------

    def materialize(self, rng: TextRange, anchor: Anchor) -> bool:
        """Wrap *rng* in a marker for *anchor*.

        Falls back to extracting the contents into a fresh marker and
        reinserting it when the range cannot be wrapped in place.
        """
        marker = make_marker(anchor.id, anchor.color)
        try:
            surround_contents(rng, marker)
            return True
        except WrapFailure as exc:
            logger.debug("Anchor %s: surround failed (%s), extracting", anchor.id, exc)

        marker = make_marker(anchor.id, anchor.color)
        try:
            fragment, container, offset = extract_contents(rng)
            for node in fragment:
                marker.append(node)
            insert_node(container, offset, marker)
            return True
        except WrapFailure as exc:
            logger.error("Anchor %s: could not materialise: %s", anchor.id, exc)
            return False

    def apply(self, anchor: Anchor) -> Resolution:
        """Resolve and materialise one anchor.

        Raises:
            ResolutionExhausted: If the anchor cannot be located.
            WrapFailure: If both wrapping strategies fail.
        """
        resolution = self.resolve(anchor)
        if not self.materialize(resolution.range, anchor):
            msg = f"Both wrap strategies failed for anchor {anchor.id}"
            raise WrapFailure(msg)
        return resolution

    def resolve_all(self, anchors: Iterable[Anchor]) -> ResolveReport:
        """Apply every anchor independently and report the outcome."""
        report = ResolveReport()
        for anchor in anchors:
            report.total += 1
            try:
                highlighter_for(anchor.kind).apply(self, anchor)
            except ResolutionExhausted as exc:
                logger.warning("%s", exc)
                report.failures[anchor.id] = str(exc)
            except AnchorError as exc:
                logger.warning("Failed to apply highlight %s: %s", anchor.id, exc)
                report.failures[anchor.id] = str(exc)
            else:
                report.resolved.append(anchor)

        logger.info(
            "Applied %d of %d highlights", report.resolved_count, report.total
        )
        return report
