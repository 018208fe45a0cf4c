"""Per-document highlight engine.

Ties the anchoring core to its collaborators: an ``AnchorStore`` for
persistence and a ``SettingsProvider`` for presentation settings.  One
engine serves one document identity for the lifetime of a loaded page.

All tree mutation runs synchronously.  The engine only suspends while
loading anchors (before a resolution pass) and while fetching settings
(before a new highlight is committed), so a pass never interleaves with
another mutation.  Updates to the stored anchor list are read-modify-write
sequences serialised by a per-engine lock, so concurrent highlights on one
document never overwrite each other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from highlightkeeper.anchoring.builder import AnchorBuilder
from highlightkeeper.anchoring.errors import MalformedAnchor
from highlightkeeper.anchoring.highlight_set import HighlightSet
from highlightkeeper.anchoring.identity import document_identity
from highlightkeeper.anchoring.kinds import highlighter_for
from highlightkeeper.anchoring.models import AnchorKind, parse_anchor, recolor
from highlightkeeper.anchoring.resolver import AnchorResolver
from highlightkeeper.anchoring.tree import Document
from highlightkeeper.config import MatchingConfig

if TYPE_CHECKING:
    from collections.abc import Sequence

    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.anchoring.ranges import TextRange
    from highlightkeeper.anchoring.resolver import ResolveReport
    from highlightkeeper.storage.protocol import AnchorStore, SettingsProvider

logger = logging.getLogger(__name__)


class HighlightEngine:
    """Builds, restores and clears highlights for one document.

    Attributes:
        document: The live tree highlights are materialised in.
        identity: Normalised document identity (see ``document_identity``).
        highlights: Anchors currently materialised in ``document``.
        enabled: When False, loads and new highlights are ignored.
    """

    def __init__(
        self,
        document: Document,
        url: str,
        store: AnchorStore,
        settings_provider: SettingsProvider,
        *,
        matching: MatchingConfig | None = None,
        enabled: bool = True,
    ) -> None:
        matching = matching or MatchingConfig()
        self.document = document
        self.identity = document_identity(url)
        self.store = store
        self.settings_provider = settings_provider
        self.enabled = enabled

        self.builder = AnchorBuilder(
            document, self.identity, fragment_length=matching.fragment_length
        )
        self.resolver = AnchorResolver(
            document,
            target_ratio=matching.target_ratio,
            context_ratio=matching.context_ratio,
        )
        self.highlights = HighlightSet(document, self.resolver)

        self._resolving = False
        self._rerun_requested = False
        # Held across every load-modify-save of the stored anchor list
        self._store_lock = asyncio.Lock()

    @classmethod
    def activate(
        cls,
        html: str,
        url: str,
        store: AnchorStore,
        settings_provider: SettingsProvider,
        *,
        matching: MatchingConfig | None = None,
        enabled: bool = True,
    ) -> HighlightEngine:
        """Parse *html* and create an engine for it.

        Raises:
            DocumentRootMissing: If the document has no content root.
        """
        document = Document.from_html(html)
        engine = cls(
            document,
            url,
            store,
            settings_provider,
            matching=matching,
            enabled=enabled,
        )
        logger.info("Activated highlight engine for %s", engine.identity)
        return engine

    # -- restoring ---------------------------------------------------------

    def _coerce(self, direct_data: Sequence[Anchor | dict[str, Any]]) -> list[Anchor]:
        anchors: list[Anchor] = []
        for item in direct_data:
            if isinstance(item, dict):
                try:
                    item = parse_anchor(item, self.identity)
                except MalformedAnchor as exc:
                    logger.warning("Skipping supplied anchor: %s", exc)
                    continue
            anchors.append(item)
        return anchors

    async def load_highlights(
        self,
        *,
        force: bool = False,
        direct_data: Sequence[Anchor | dict[str, Any]] | None = None,
    ) -> ResolveReport | None:
        """Restore stored highlights into the document.

        Args:
            force: Clear existing markers and resolve everything again.
            direct_data: Anchors to apply instead of reading the store.

        Returns:
            The report of the last pass run, or None when nothing ran
            (disabled, already applied, or deferred behind an in-flight pass).
        """
        if not self.enabled:
            logger.debug("Highlighting disabled, not loading %s", self.identity)
            return None

        if self._resolving:
            if force:
                logger.debug("Resolution in progress, queueing forced reload")
                self._rerun_requested = True
            else:
                logger.debug("Resolution in progress, dropping load request")
            return None

        self._resolving = True
        report: ResolveReport | None = None
        try:
            while True:
                self._rerun_requested = False
                if direct_data is not None:
                    anchors = self._coerce(direct_data)
                else:
                    anchors = await self.store.load_anchors(self.identity)
                    if not self.enabled:
                        logger.debug("Disabled mid-load, skipping %s", self.identity)
                        break
                report = self.highlights.apply_all(anchors, force=force)
                if not self._rerun_requested:
                    break
                # A forced request arrived while we were suspended
                force = True
                direct_data = None
        finally:
            self._resolving = False
        return report

    # -- creating ----------------------------------------------------------

    async def highlight_selection(self, selection: TextRange) -> Anchor | None:
        """Highlight *selection* and persist it if persistence is enabled.

        Returns:
            The new anchor, or None if highlighting is disabled or the
            selection could not be highlighted.
        """
        if not self.enabled:
            return None

        settings = await self.settings_provider.current()
        if not self.enabled:
            return None
        highlighter = highlighter_for(AnchorKind.TEXT)
        anchor = highlighter.build(
            self.builder, selection, color=settings.highlight_color
        )
        if anchor is None:
            return None
        self.highlights.add(anchor)

        if settings.persistence_enabled:
            async with self._store_lock:
                stored = await self.store.load_anchors(self.identity)
                stored = [existing for existing in stored if existing.id != anchor.id]
                stored.append(anchor)
                await self.store.save_anchors(
                    self.identity, stored, title=self.document.title or None
                )
        return anchor

    # -- clearing and presentation -----------------------------------------

    async def clear_highlights(self) -> int:
        """Remove every marker and delete the stored anchors.

        Returns:
            Number of markers removed from the document.
        """
        removed = self.highlights.clear()
        async with self._store_lock:
            await self.store.delete_anchors(self.identity)
        logger.info("Cleared %d highlights for %s", removed, self.identity)
        return removed

    async def remove_highlight(self, anchor_id: str) -> bool:
        """Remove one highlight from the document and from storage."""
        removed = self.highlights.remove(anchor_id)
        async with self._store_lock:
            stored = await self.store.load_anchors(self.identity)
            remaining = [anchor for anchor in stored if anchor.id != anchor_id]
            if len(remaining) != len(stored):
                await self.store.save_anchors(
                    self.identity, remaining, title=self.document.title or None
                )
                removed = True
        return removed

    async def update_color(self, color: str) -> None:
        """Recolour existing highlights, in the document and in storage.

        New highlights keep taking their colour from the settings provider.
        """
        self.highlights.recolor(color)
        async with self._store_lock:
            stored = await self.store.load_anchors(self.identity)
            if stored:
                await self.store.save_anchors(
                    self.identity,
                    recolor(stored, color),
                    title=self.document.title or None,
                )

    async def set_enabled(self, enabled: bool) -> ResolveReport | None:
        """Toggle highlighting for this document.

        Disabling removes markers but keeps stored anchors; enabling restores
        them.
        """
        if enabled == self.enabled:
            return None
        self.enabled = enabled
        if not enabled:
            self.highlights.clear()
            logger.info("Highlighting disabled for %s", self.identity)
            return None
        logger.info("Highlighting enabled for %s", self.identity)
        return await self.load_highlights(force=True)

    def html(self) -> str:
        """Serialise the document with its current markers."""
        return self.document.html()
