"""Unit tests for HighlightEngine."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from highlightkeeper.anchoring.builder import select_text
from highlightkeeper.anchoring.errors import DocumentRootMissing
from highlightkeeper.anchoring.markers import iter_markers
from highlightkeeper.anchoring.tree import Document
from highlightkeeper.config import HighlightConfig, Settings
from highlightkeeper.engine import HighlightEngine
from highlightkeeper.storage.json_store import JsonFileStore
from highlightkeeper.storage.memory import ConfigSettingsProvider, MemoryAnchorStore
from tests.unit.conftest import REPORT_HTML, REPORT_IDENTITY, REPORT_URL

if TYPE_CHECKING:
    from pathlib import Path

    from highlightkeeper.anchoring.models import Anchor


class GatedStore(MemoryAnchorStore):
    """Memory store whose loads block until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.load_calls = 0

    async def load_anchors(self, identity: str) -> list[Anchor]:
        self.load_calls += 1
        await self.gate.wait()
        return await super().load_anchors(identity)


def _engine(store, provider, html: str = REPORT_HTML) -> HighlightEngine:
    return HighlightEngine.activate(html, REPORT_URL, store, provider)


async def _seed(store, provider) -> Anchor:
    """Create and persist one highlight on 'report'; return its anchor."""
    engine = _engine(store, provider)
    anchor = await engine.highlight_selection(select_text(engine.document, "report"))
    assert anchor is not None
    return anchor


def _marker_texts(engine: HighlightEngine) -> list[str]:
    return [marker.text_content() for marker in iter_markers(engine.document)]


class TestActivate:
    """Tests for HighlightEngine.activate."""

    def test_identity_normalised(self, store, settings_provider) -> None:
        engine = _engine(store, settings_provider)
        assert engine.identity == REPORT_IDENTITY
        assert engine.enabled

    def test_missing_root_is_fatal(
        self, store, settings_provider, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _no_body(html: str) -> Document:
            raise DocumentRootMissing("Document has no <body> content root")

        monkeypatch.setattr(Document, "from_html", _no_body)
        with pytest.raises(DocumentRootMissing):
            _engine(store, settings_provider)


class TestHighlightSelection:
    """Tests for creating highlights."""

    @pytest.mark.asyncio
    async def test_persists_when_enabled(self, store, settings_provider) -> None:
        engine = _engine(store, settings_provider)

        anchor = await engine.highlight_selection(select_text(engine.document, "report"))

        assert anchor is not None
        assert anchor.color == "yellow"
        assert _marker_texts(engine) == ["report"]
        assert await store.load_anchors(REPORT_IDENTITY) == [anchor]
        index = await store.list_documents()
        assert index[REPORT_IDENTITY].title == "Quarterly"
        assert index[REPORT_IDENTITY].count == 1

    @pytest.mark.asyncio
    async def test_persistence_disabled_keeps_highlight(self, store) -> None:
        """Disabled persistence skips the store but still highlights."""
        provider = ConfigSettingsProvider(
            Settings(  # type: ignore[call-arg]
                _env_file=None,
                highlight=HighlightConfig(color="pink", persistence_enabled=False),
            )
        )
        engine = _engine(store, provider)

        anchor = await engine.highlight_selection(select_text(engine.document, "report"))

        assert anchor is not None
        assert anchor.id in engine.highlights
        assert _marker_texts(engine) == ["report"]
        assert await store.load_anchors(REPORT_IDENTITY) == []

    @pytest.mark.asyncio
    async def test_appends_to_stored_collection(self, store, settings_provider) -> None:
        first = await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)

        second = await engine.highlight_selection(select_text(engine.document, "details"))

        assert second is not None
        stored = await store.load_anchors(REPORT_IDENTITY)
        assert [anchor.id for anchor in stored] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_concurrent_selections_both_persist(
        self, settings_provider, tmp_path: Path
    ) -> None:
        """Two highlights saved at once each land in the stored collection."""
        store = JsonFileStore(tmp_path)
        engine = _engine(store, settings_provider)
        first = select_text(engine.document, "See")
        second = select_text(engine.document, "details")

        created = await asyncio.gather(
            engine.highlight_selection(first), engine.highlight_selection(second)
        )

        assert all(anchor is not None for anchor in created)
        stored = await JsonFileStore(tmp_path).load_anchors(REPORT_IDENTITY)
        assert {anchor.id for anchor in stored} == {
            anchor.id for anchor in created if anchor is not None
        }

    @pytest.mark.asyncio
    async def test_disabled_engine_ignores_selection(
        self, store, settings_provider
    ) -> None:
        engine = _engine(store, settings_provider)
        engine.enabled = False

        assert await engine.highlight_selection(select_text(engine.document, "See")) is None
        assert _marker_texts(engine) == []


class TestLoadHighlights:
    """Tests for restoring highlights."""

    @pytest.mark.asyncio
    async def test_restores_into_fresh_document(self, store, settings_provider) -> None:
        await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)

        report = await engine.load_highlights()

        assert report is not None
        assert report.resolved_count == 1
        assert _marker_texts(engine) == ["report"]

    @pytest.mark.asyncio
    async def test_second_load_is_noop(self, store, settings_provider) -> None:
        await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)
        await engine.load_highlights()

        assert await engine.load_highlights() is None
        assert _marker_texts(engine) == ["report"]

    @pytest.mark.asyncio
    async def test_direct_data_bypasses_store(self, settings_provider) -> None:
        seeded = MemoryAnchorStore()
        anchor = await _seed(seeded, settings_provider)
        empty = MemoryAnchorStore()
        engine = _engine(empty, settings_provider)

        report = await engine.load_highlights(direct_data=[anchor.to_json_dict()])

        assert report is not None
        assert report.resolved_count == 1
        assert _marker_texts(engine) == ["report"]

    @pytest.mark.asyncio
    async def test_direct_data_skips_malformed(self, store, settings_provider) -> None:
        engine = _engine(store, settings_provider)

        report = await engine.load_highlights(direct_data=[{"id": "broken"}])

        assert report is not None
        assert report.total == 0

    @pytest.mark.asyncio
    async def test_forced_request_mid_pass_is_queued(self, settings_provider) -> None:
        """A forced reload arriving during a pass runs once the pass ends."""
        seeded = GatedStore()
        seeded.gate.set()
        await _seed(seeded, settings_provider)
        seeded.gate.clear()
        seeded.load_calls = 0

        engine = _engine(seeded, settings_provider)
        in_flight = asyncio.create_task(engine.load_highlights())
        while seeded.load_calls == 0:
            await asyncio.sleep(0)

        assert await engine.load_highlights(force=True) is None
        seeded.gate.set()
        report = await in_flight

        assert seeded.load_calls == 2
        assert report is not None
        assert report.resolved_count == 1
        assert _marker_texts(engine) == ["report"]

    @pytest.mark.asyncio
    async def test_plain_request_mid_pass_is_dropped(self, settings_provider) -> None:
        seeded = GatedStore()
        seeded.gate.set()
        await _seed(seeded, settings_provider)
        seeded.gate.clear()
        seeded.load_calls = 0

        engine = _engine(seeded, settings_provider)
        in_flight = asyncio.create_task(engine.load_highlights())
        while seeded.load_calls == 0:
            await asyncio.sleep(0)

        assert await engine.load_highlights() is None
        seeded.gate.set()
        await in_flight

        assert seeded.load_calls == 1
        assert _marker_texts(engine) == ["report"]


class TestClearColorAndToggle:
    """Tests for clearing, recolouring and enabling."""

    @pytest.mark.asyncio
    async def test_clear_removes_markers_and_storage(
        self, store, settings_provider
    ) -> None:
        await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)
        await engine.load_highlights()

        assert await engine.clear_highlights() == 1

        assert _marker_texts(engine) == []
        assert await store.load_anchors(REPORT_IDENTITY) == []
        assert REPORT_IDENTITY not in await store.list_documents()
        assert engine.document.root.text_content() == "See the report for details."

    @pytest.mark.asyncio
    async def test_remove_single_highlight(self, store, settings_provider) -> None:
        anchor = await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)
        await engine.load_highlights()

        assert await engine.remove_highlight(anchor.id)

        assert _marker_texts(engine) == []
        assert await store.load_anchors(REPORT_IDENTITY) == []

    @pytest.mark.asyncio
    async def test_update_color(self, store, settings_provider) -> None:
        await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)
        await engine.load_highlights()

        await engine.update_color("#123456")

        (marker,) = iter_markers(engine.document)
        assert marker.attributes["style"] == "background-color: #123456"
        stored = await store.load_anchors(REPORT_IDENTITY)
        assert [anchor.color for anchor in stored] == ["#123456"]

    @pytest.mark.asyncio
    async def test_disable_during_load_leaves_no_markers(
        self, settings_provider
    ) -> None:
        """A pass suspended on the store does not apply after a disable."""
        seeded = GatedStore()
        seeded.gate.set()
        await _seed(seeded, settings_provider)
        seeded.gate.clear()
        seeded.load_calls = 0

        engine = _engine(seeded, settings_provider)
        in_flight = asyncio.create_task(engine.load_highlights())
        while seeded.load_calls == 0:
            await asyncio.sleep(0)

        await engine.set_enabled(False)
        seeded.gate.set()

        assert await in_flight is None
        assert not engine.enabled
        assert _marker_texts(engine) == []
        assert "highlightkeeper-mark" not in engine.html()

    @pytest.mark.asyncio
    async def test_disable_keeps_storage_enable_restores(
        self, store, settings_provider
    ) -> None:
        await _seed(store, settings_provider)
        engine = _engine(store, settings_provider)
        await engine.load_highlights()

        await engine.set_enabled(False)
        assert _marker_texts(engine) == []
        assert len(await store.load_anchors(REPORT_IDENTITY)) == 1
        assert await engine.load_highlights() is None

        report = await engine.set_enabled(True)
        assert report is not None
        assert _marker_texts(engine) == ["report"]
