"""Error kinds raised by the anchoring engine.

Only ``DocumentRootMissing`` is fatal for an engine instance; every other
error is scoped to a single anchor and is caught by batch operations.
"""

from __future__ import annotations


class AnchorError(Exception):
    """Base class for anchoring failures."""


class DocumentRootMissing(AnchorError):
    """The document has no content root to anchor against."""


class AddressDecodeFailure(AnchorError):
    """A structural address no longer resolves in the current tree."""

    def __init__(self, message: str, depth: int) -> None:
        self.depth = depth
        super().__init__(message)


class WrapFailure(AnchorError):
    """A range cannot be wrapped in a marker element."""


class ResolutionExhausted(AnchorError):
    """Every resolution stage failed for one anchor."""

    def __init__(self, anchor_id: str) -> None:
        self.anchor_id = anchor_id
        super().__init__(f"No resolution stage located anchor {anchor_id}")


class MalformedAnchor(AnchorError):
    """Stored anchor data is missing required fields or is inconsistent."""

    def __init__(self, message: str, identity: str | None = None) -> None:
        self.identity = identity
        super().__init__(message)


class UnsupportedAnchorKind(AnchorError):
    """No highlighter is registered for the anchor's kind."""
