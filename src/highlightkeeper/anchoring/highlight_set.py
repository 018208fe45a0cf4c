"""The set of highlights currently materialised in a document."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.kinds import highlighter_for
from highlightkeeper.anchoring.markers import (
    iter_markers,
    set_marker_color,
    unwrap_marker,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.anchoring.resolver import AnchorResolver, ResolveReport
    from highlightkeeper.anchoring.tree import Document

logger = logging.getLogger(__name__)


class HighlightSet:
    """Anchors materialised in the current tree, keyed by id.

    Rebuilt every time an engine activates for a document; never persisted.
    """

    def __init__(self, document: Document, resolver: AnchorResolver) -> None:
        self.document = document
        self.resolver = resolver
        self._applied: dict[str, Anchor] = {}

    def __len__(self) -> int:
        return len(self._applied)

    def __contains__(self, anchor_id: object) -> bool:
        return anchor_id in self._applied

    def anchors(self) -> list[Anchor]:
        return list(self._applied.values())

    def add(self, anchor: Anchor) -> None:
        """Track an anchor that was materialised outside ``apply_all``."""
        self._applied[anchor.id] = anchor

    def clear(self) -> int:
        """Unwrap every marker in the tree and forget all anchors.

        Returns:
            Number of markers removed.
        """
        markers = list(iter_markers(self.document))
        for marker in markers:
            unwrap_marker(marker)
        self._applied.clear()
        logger.debug("Cleared %d highlight markers", len(markers))
        return len(markers)

    def remove(self, anchor_id: str) -> bool:
        """Unwrap one highlight; returns False if it is not materialised."""
        anchor = self._applied.pop(anchor_id, None)
        if anchor is None:
            return False
        highlighter_for(anchor.kind).remove(self.document, anchor_id)
        return True

    def recolor(self, color: str) -> list[Anchor]:
        """Rewrite the colour of every marker and tracked anchor."""
        for marker in iter_markers(self.document):
            set_marker_color(marker, color)
        self._applied = {
            anchor_id: anchor.with_color(color)
            for anchor_id, anchor in self._applied.items()
        }
        return self.anchors()

    def apply_all(
        self, anchors: Iterable[Anchor], *, force: bool = False
    ) -> ResolveReport | None:
        """Resolve and materialise *anchors*.

        Args:
            anchors: Stored anchors for this document.
            force: Clear existing markers first and resolve again.

        Returns:
            The batch report, or None when the set was already populated and
            *force* was not given.
        """
        if force:
            self.clear()
        elif self._applied:
            logger.debug("Highlights already applied, skipping resolution pass")
            return None

        report = self.resolver.resolve_all(anchors)
        for anchor in report.resolved:
            self._applied[anchor.id] = anchor
        return report
