"""Shared pytest fixtures for HighlightKeeper tests."""

from __future__ import annotations

from typing import Any

import pytest

from highlightkeeper.anchoring.models import AddressStep, Anchor, NodeKind
from highlightkeeper.config import HighlightConfig, Settings
from highlightkeeper.storage.memory import ConfigSettingsProvider, MemoryAnchorStore

REPORT_HTML = (
    "<html><head><title>Quarterly</title></head>"
    "<body><p>See <b>the report</b> for details.</p></body></html>"
)
REPORT_URL = "https://example.com/reports/q3?utm_source=mail#summary"
REPORT_IDENTITY = "https://example.com/reports/q3"

# An address that cannot resolve in any of the small test documents
BOGUS_ADDRESS = [
    AddressStep(
        ordinal=7,
        type_ordinal=7,
        node_kind=NodeKind.ELEMENT,
        tag_name="table",
    )
]


def make_anchor(**overrides: Any) -> Anchor:
    """Anchor with sensible defaults; keyword arguments override fields."""
    fields: dict[str, Any] = {
        "id": "highlight-1-abcdef0",
        "document": REPORT_IDENTITY,
        "selected_text": "the report",
        "context": "See the report for details.",
        "primary_address": BOGUS_ADDRESS,
        "start_offset": 4,
        "end_offset": 14,
        "color": "yellow",
    }
    fields.update(overrides)
    return Anchor(**fields)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and .env file."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        highlight=HighlightConfig(color="yellow", persistence_enabled=True),
    )


@pytest.fixture
def settings_provider(settings: Settings) -> ConfigSettingsProvider:
    return ConfigSettingsProvider(settings)


@pytest.fixture
def store() -> MemoryAnchorStore:
    return MemoryAnchorStore()
