"""Protocols for the engine's external collaborators.

The engine never touches files or settings sources directly; it awaits these
interfaces at its suspension points.  ``JsonFileStore`` and
``MemoryAnchorStore`` implement ``AnchorStore``; ``ConfigSettingsProvider``
implements ``SettingsProvider``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from highlightkeeper.anchoring.models import WireModel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from highlightkeeper.anchoring.models import Anchor


class IndexEntry(WireModel):
    """Metadata kept per document alongside its anchors."""

    count: int
    last_updated: datetime
    title: str = ""


@dataclass(frozen=True)
class HighlightSettings:
    """Presentation settings read when a highlight is created.

    Attributes:
        highlight_color: Colour applied to new markers.
        persistence_enabled: Whether new highlights are saved.  Highlights
            exist in the session either way.
    """

    highlight_color: str
    persistence_enabled: bool = True


class AnchorStore(Protocol):
    """Persistence for per-document anchor collections."""

    async def load_anchors(self, identity: str) -> list[Anchor]:
        """Return the stored anchors for *identity* (empty if none)."""
        ...

    async def save_anchors(
        self,
        identity: str,
        anchors: Sequence[Anchor],
        *,
        title: str | None = None,
    ) -> bool:
        """Replace the stored collection for *identity*.

        Returns:
            True on success.
        """
        ...

    async def delete_anchors(self, identity: str) -> bool:
        """Remove every stored anchor for *identity*."""
        ...

    async def list_documents(self) -> dict[str, IndexEntry]:
        """Return the metadata index keyed by document identity."""
        ...


class SettingsProvider(Protocol):
    """Source of the current presentation settings."""

    async def current(self) -> HighlightSettings:
        """Return the settings in force right now."""
        ...
