"""Unit tests for the file-backed anchor store."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from highlightkeeper.storage.json_store import INDEX_FILENAME, JsonFileStore, storage_key
from tests.unit.conftest import REPORT_IDENTITY, make_anchor

if TYPE_CHECKING:
    from pathlib import Path


class TestStorageKey:
    """Tests for storage_key."""

    def test_stable_and_filename_safe(self) -> None:
        key = storage_key(REPORT_IDENTITY)
        assert key == storage_key(REPORT_IDENTITY)
        assert key.startswith("highlight-data-")
        assert "/" not in key

    def test_distinct_identities(self) -> None:
        assert storage_key("https://a.example") != storage_key("https://b.example")


class TestJsonFileStore:
    """Tests for JsonFileStore."""

    @pytest.mark.asyncio
    async def test_round_trip_full_fidelity(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        anchors = [make_anchor(id="a"), make_anchor(id="b", color="#00ff00")]

        assert await store.save_anchors(REPORT_IDENTITY, anchors, title="Quarterly")

        assert await JsonFileStore(tmp_path).load_anchors(REPORT_IDENTITY) == anchors

    @pytest.mark.asyncio
    async def test_index_metadata(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        await store.save_anchors(REPORT_IDENTITY, [make_anchor()], title="Quarterly")

        index = await store.list_documents()

        assert index[REPORT_IDENTITY].count == 1
        assert index[REPORT_IDENTITY].title == "Quarterly"
        raw = json.loads((tmp_path / INDEX_FILENAME).read_text("utf-8"))
        assert set(raw[REPORT_IDENTITY]) == {"count", "lastUpdated", "title"}

    @pytest.mark.asyncio
    async def test_title_defaults_to_identity(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        await store.save_anchors(REPORT_IDENTITY, [make_anchor()])
        index = await store.list_documents()
        assert index[REPORT_IDENTITY].title == REPORT_IDENTITY

    @pytest.mark.asyncio
    async def test_missing_document_loads_empty(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        assert await store.load_anchors("https://nowhere.example") == []
        assert await store.list_documents() == {}

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        await store.save_anchors(REPORT_IDENTITY, [make_anchor()])

        assert await store.delete_anchors(REPORT_IDENTITY)

        assert await store.load_anchors(REPORT_IDENTITY) == []
        assert REPORT_IDENTITY not in await store.list_documents()

    @pytest.mark.asyncio
    async def test_malformed_anchor_skipped(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        good = make_anchor(id="good")
        await store.save_anchors(REPORT_IDENTITY, [good])
        data_file = tmp_path / "data" / f"{storage_key(REPORT_IDENTITY)}.json"
        payload = json.loads(data_file.read_text("utf-8"))
        payload["anchors"].append({"id": "broken"})
        data_file.write_text(json.dumps(payload), "utf-8")

        assert await store.load_anchors(REPORT_IDENTITY) == [good]

    @pytest.mark.asyncio
    async def test_corrupt_index_reads_empty(self, tmp_path: Path) -> None:
        (tmp_path / INDEX_FILENAME).write_text("{not json", "utf-8")
        store = JsonFileStore(tmp_path)
        assert await store.list_documents() == {}

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocked"
        blocker.write_text("a file, not a directory", "utf-8")
        store = JsonFileStore(blocker)

        assert not await store.save_anchors(REPORT_IDENTITY, [make_anchor()])
