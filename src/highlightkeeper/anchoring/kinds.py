"""Dispatch table of highlighter capabilities per anchor kind.

Each kind registers plain functions for ``build``, ``apply`` and ``remove``.
Only text highlights are implemented; other kinds validate as data but are
rejected at dispatch.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from highlightkeeper.anchoring.errors import UnsupportedAnchorKind
from highlightkeeper.anchoring.markers import iter_markers, unwrap_marker
from highlightkeeper.anchoring.models import AnchorKind

if TYPE_CHECKING:
    from highlightkeeper.anchoring.builder import AnchorBuilder
    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.anchoring.ranges import TextRange
    from highlightkeeper.anchoring.resolver import AnchorResolver, Resolution
    from highlightkeeper.anchoring.tree import Document


@dataclass(frozen=True)
class Highlighter:
    """Capabilities for one anchor kind."""

    build: Callable[..., Anchor | None]
    apply: Callable[[AnchorResolver, Anchor], Any]
    remove: Callable[[Document, str], int]


def _build_text(
    builder: AnchorBuilder, selection: TextRange, *, color: str
) -> Anchor | None:
    return builder.build(selection, color=color)


def _apply_text(resolver: AnchorResolver, anchor: Anchor) -> Resolution:
    return resolver.apply(anchor)


def _remove_text(document: Document, anchor_id: str) -> int:
    """Unwrap every marker of *anchor_id*; return how many were removed."""
    markers = list(iter_markers(document, anchor_id))
    for marker in markers:
        unwrap_marker(marker)
    return len(markers)


HIGHLIGHTERS: dict[AnchorKind, Highlighter] = {
    AnchorKind.TEXT: Highlighter(
        build=_build_text,
        apply=_apply_text,
        remove=_remove_text,
    ),
}


def highlighter_for(kind: AnchorKind) -> Highlighter:
    """Return the registered highlighter for *kind*.

    Raises:
        UnsupportedAnchorKind: If nothing is registered for *kind*.
    """
    try:
        return HIGHLIGHTERS[kind]
    except KeyError:
        msg = f"No highlighter registered for {kind!s} anchors"
        raise UnsupportedAnchorKind(msg) from None
