"""Bulk export and import of every stored highlight.

Transfer document::

    {
      "version": "1.0",
      "exportTimestamp": "...",
      "index": {identity: {"count", "lastUpdated", "title"}},
      "data": {identity: [anchor, ...]}
    }

Import is all-or-nothing per document: one malformed anchor rejects that
document's whole collection, and is reported without blocking the others.
A malformed index entry only costs its document the stored title.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import Field, ValidationError

from highlightkeeper.anchoring.errors import MalformedAnchor
from highlightkeeper.anchoring.models import WireModel, parse_anchor
from highlightkeeper.storage.protocol import IndexEntry

if TYPE_CHECKING:
    from highlightkeeper.anchoring.models import Anchor
    from highlightkeeper.storage.protocol import AnchorStore

logger = logging.getLogger(__name__)

TRANSFER_VERSION = "1.0"


class TransferDocument(WireModel):
    """Envelope of an export file.

    Index entries and anchor lists stay raw until import, where each
    identity is validated on its own.
    """

    version: str
    export_timestamp: datetime
    index: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class ImportReport:
    """Outcome of an import.

    Attributes:
        imported: identity -> number of anchors stored.
        errors: identity -> reason the identity was skipped.
    """

    imported: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


async def export_anchors(store: AnchorStore) -> dict[str, Any]:
    """Collect every stored document into a JSON-ready transfer document."""
    index = await store.list_documents()
    data: dict[str, list[dict[str, Any]]] = {}
    for identity in index:
        anchors = await store.load_anchors(identity)
        data[identity] = [anchor.to_json_dict() for anchor in anchors]

    document = TransferDocument(
        version=TRANSFER_VERSION,
        export_timestamp=datetime.now(UTC),
        index={
            identity: entry.model_dump(mode="json", by_alias=True)
            for identity, entry in index.items()
        },
        data=data,
    )
    logger.info("Exported highlights for %d documents", len(data))
    return document.model_dump(mode="json", by_alias=True)


def _parse_collection(identity: str, raw: Any) -> list[Anchor]:
    if not isinstance(raw, list):
        msg = f"Expected a list of anchors, got {type(raw).__name__}"
        raise MalformedAnchor(msg, identity)
    return [parse_anchor(item, identity) for item in raw]


def _index_title(identity: str, raw: Any) -> str | None:
    """Title from an index entry; a bad entry only loses its metadata."""
    if raw is None:
        return None
    try:
        return IndexEntry.model_validate(raw).title or None
    except ValidationError as exc:
        logger.warning("Ignoring malformed index entry for %s: %s", identity, exc)
        return None


async def import_anchors(
    store: AnchorStore, payload: str | bytes | dict[str, Any]
) -> ImportReport:
    """Store every valid document collection from *payload*.

    Raises:
        MalformedAnchor: If the envelope itself is unreadable (no document
            can be imported at all).
    """
    try:
        raw = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
        document = TransferDocument.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        msg = f"Not a highlight transfer document: {exc}"
        raise MalformedAnchor(msg) from exc

    report = ImportReport()
    for identity, raw_anchors in document.data.items():
        try:
            anchors = _parse_collection(identity, raw_anchors)
        except MalformedAnchor as exc:
            logger.warning("Skipping import of %s: %s", identity, exc)
            report.errors[identity] = str(exc)
            continue

        title = _index_title(identity, document.index.get(identity))
        saved = await store.save_anchors(identity, anchors, title=title)
        if saved:
            report.imported[identity] = len(anchors)
        else:
            report.errors[identity] = "store rejected the collection"

    logger.info(
        "Imported %d documents (%d skipped)", len(report.imported), len(report.errors)
    )
    return report
