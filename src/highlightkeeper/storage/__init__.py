"""Persistence collaborators: anchor stores, settings, bulk transfer."""

from highlightkeeper.storage.json_store import JsonFileStore
from highlightkeeper.storage.memory import ConfigSettingsProvider, MemoryAnchorStore
from highlightkeeper.storage.protocol import (
    AnchorStore,
    HighlightSettings,
    IndexEntry,
    SettingsProvider,
)
from highlightkeeper.storage.transfer import (
    ImportReport,
    TransferDocument,
    export_anchors,
    import_anchors,
)

__all__ = [
    "AnchorStore",
    "ConfigSettingsProvider",
    "HighlightSettings",
    "ImportReport",
    "IndexEntry",
    "JsonFileStore",
    "MemoryAnchorStore",
    "SettingsProvider",
    "TransferDocument",
    "export_anchors",
    "import_anchors",
]
