"""In-process stores, for sessions without persistence and for tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from highlightkeeper.storage.protocol import HighlightSettings, IndexEntry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.config import Settings


class MemoryAnchorStore:
    """Dict-backed ``AnchorStore``."""

    def __init__(self) -> None:
        self._data: dict[str, list[Anchor]] = {}
        self._index: dict[str, IndexEntry] = {}

    async def load_anchors(self, identity: str) -> list[Anchor]:
        return list(self._data.get(identity, []))

    async def save_anchors(
        self,
        identity: str,
        anchors: Sequence[Anchor],
        *,
        title: str | None = None,
    ) -> bool:
        self._data[identity] = list(anchors)
        self._index[identity] = IndexEntry(
            count=len(anchors),
            last_updated=datetime.now(UTC),
            title=title or identity,
        )
        return True

    async def delete_anchors(self, identity: str) -> bool:
        self._data.pop(identity, None)
        self._index.pop(identity, None)
        return True

    async def list_documents(self) -> dict[str, IndexEntry]:
        return dict(self._index)


class ConfigSettingsProvider:
    """``SettingsProvider`` backed by application settings.

    ``update`` changes the colour for the rest of the session without
    touching the environment.
    """

    def __init__(self, settings: Settings) -> None:
        self._color = settings.highlight.color
        self._persistence_enabled = settings.highlight.persistence_enabled

    def update(
        self, *, color: str | None = None, persistence_enabled: bool | None = None
    ) -> None:
        if color is not None:
            self._color = color
        if persistence_enabled is not None:
            self._persistence_enabled = persistence_enabled

    async def current(self) -> HighlightSettings:
        return HighlightSettings(
            highlight_color=self._color,
            persistence_enabled=self._persistence_enabled,
        )
