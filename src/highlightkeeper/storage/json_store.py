"""File-backed anchor store.

Layout under ``data_dir``::

    highlight-index.json              {identity: {count, lastUpdated, title}}
    data/highlight-data-<hash>.json   {"document": identity, "anchors": [...]}

File I/O runs in a worker thread so awaiting callers never block the event
loop.  Writes go to a temporary file first and are moved into place.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from highlightkeeper.anchoring.errors import MalformedAnchor
from highlightkeeper.anchoring.models import parse_anchor
from highlightkeeper.storage.protocol import IndexEntry

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from highlightkeeper.anchoring.models import Anchor

logger = logging.getLogger(__name__)

INDEX_FILENAME = "highlight-index.json"


def storage_key(identity: str) -> str:
    """Filename-safe key for a document identity."""
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]
    return f"highlight-data-{digest}"


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), "utf-8")
    os.replace(tmp_path, path)


class JsonFileStore:
    """``AnchorStore`` persisting JSON files under *data_dir*."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self._index_path = data_dir / INDEX_FILENAME
        # Serialises read-modify-write cycles on the index file
        self._lock = asyncio.Lock()

    def _data_path(self, identity: str) -> Path:
        return self.data_dir / "data" / f"{storage_key(identity)}.json"

    # -- index -------------------------------------------------------------

    def _read_index(self) -> dict[str, IndexEntry]:
        if not self._index_path.is_file():
            return {}
        try:
            raw = json.loads(self._index_path.read_text("utf-8"))
            return {key: IndexEntry.model_validate(value) for key, value in raw.items()}
        except (json.JSONDecodeError, ValidationError, AttributeError) as exc:
            logger.error("Highlight index %s is unreadable: %s", self._index_path, exc)
            return {}

    def _write_index(self, index: dict[str, IndexEntry]) -> None:
        _write_json(
            self._index_path,
            {
                key: entry.model_dump(mode="json", by_alias=True)
                for key, entry in sorted(index.items())
            },
        )

    # -- sync workers ------------------------------------------------------

    def _load_sync(self, identity: str) -> list[Anchor]:
        path = self._data_path(identity)
        if not path.is_file():
            return []
        try:
            payload = json.loads(path.read_text("utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Highlight data for %s is corrupt: %s", identity, exc)
            return []

        raw_anchors = payload.get("anchors", []) if isinstance(payload, dict) else []
        anchors: list[Anchor] = []
        for raw in raw_anchors:
            try:
                anchors.append(parse_anchor(raw, identity))
            except MalformedAnchor as exc:
                logger.warning("Skipping stored anchor for %s: %s", identity, exc)
        return anchors

    def _save_sync(
        self, identity: str, anchors: Sequence[Anchor], title: str | None
    ) -> None:
        _write_json(
            self._data_path(identity),
            {
                "document": identity,
                "anchors": [anchor.to_json_dict() for anchor in anchors],
            },
        )
        index = self._read_index()
        index[identity] = IndexEntry(
            count=len(anchors),
            last_updated=datetime.now(UTC),
            title=title or identity,
        )
        self._write_index(index)

    def _delete_sync(self, identity: str) -> None:
        self._data_path(identity).unlink(missing_ok=True)
        index = self._read_index()
        if index.pop(identity, None) is not None:
            self._write_index(index)

    # -- AnchorStore -------------------------------------------------------

    async def load_anchors(self, identity: str) -> list[Anchor]:
        return await asyncio.to_thread(self._load_sync, identity)

    async def save_anchors(
        self,
        identity: str,
        anchors: Sequence[Anchor],
        *,
        title: str | None = None,
    ) -> bool:
        async with self._lock:
            try:
                await asyncio.to_thread(self._save_sync, identity, list(anchors), title)
            except OSError as exc:
                logger.error("Failed to save highlights for %s: %s", identity, exc)
                return False
        logger.info("Saved %d highlights for %s", len(anchors), identity)
        return True

    async def delete_anchors(self, identity: str) -> bool:
        async with self._lock:
            try:
                await asyncio.to_thread(self._delete_sync, identity)
            except OSError as exc:
                logger.error("Failed to delete highlights for %s: %s", identity, exc)
                return False
        logger.info("Deleted highlights for %s", identity)
        return True

    async def list_documents(self) -> dict[str, IndexEntry]:
        return await asyncio.to_thread(self._read_index)
