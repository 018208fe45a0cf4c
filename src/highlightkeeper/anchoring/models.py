"""Durable anchor records.

These are the serialisable values handed to persistence.  JSON uses
camelCase keys (``selectedText``, ``primaryAddress``...) so exported files
read the same as the browser-side data they interoperate with.
"""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from highlightkeeper.anchoring.errors import MalformedAnchor

TEXT_FRAGMENT_LENGTH = 50


class NodeKind(StrEnum):
    ELEMENT = "element"
    TEXT = "text"


class AnchorKind(StrEnum):
    """Tagged union of highlight variants; only TEXT has a highlighter."""

    TEXT = "text"
    IMAGE = "image"


class WireModel(BaseModel):
    """Base for models persisted as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class AddressStep(WireModel):
    """One level of a structural address, from the root towards the node.

    Attributes:
        ordinal: Index among all siblings.
        type_ordinal: Index among siblings with the same kind and tag.
        node_kind: Element or text.
        tag_name: Lower-case tag for elements, None for text.
        css_class: The element's class attribute, if any.
        element_id: The element's id attribute, if any.
        text_fragment: Leading characters of a text node at capture time.
    """

    ordinal: int = Field(ge=0)
    type_ordinal: int = Field(ge=0)
    node_kind: NodeKind
    tag_name: str | None = None
    css_class: str | None = None
    element_id: str | None = None
    text_fragment: str | None = Field(default=None, max_length=TEXT_FRAGMENT_LENGTH)


StructuralAddress: TypeAlias = list[AddressStep]


def new_anchor_id() -> str:
    """Timestamp plus random suffix; unique within a document's collection."""
    return f"highlight-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


class Anchor(WireModel):
    """A highlighted span described independently of any live tree."""

    id: str = Field(min_length=1)
    kind: AnchorKind = AnchorKind.TEXT
    document: str
    selected_text: str = Field(min_length=1)
    context: str = ""
    primary_address: list[AddressStep] = Field(default_factory=list)
    start_container_address: list[AddressStep] = Field(default_factory=list)
    end_container_address: list[AddressStep] = Field(default_factory=list)
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
    color: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def _offsets_ordered(self) -> Anchor:
        if self.start_offset > self.end_offset:
            msg = (
                f"start_offset ({self.start_offset}) exceeds "
                f"end_offset ({self.end_offset})"
            )
            raise ValueError(msg)
        return self

    def with_color(self, color: str) -> Anchor:
        return self.model_copy(update={"color": color})

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def recolor(anchors: list[Anchor], color: str) -> list[Anchor]:
    """Rewrite the presentation colour of every anchor in bulk."""
    return [anchor.with_color(color) for anchor in anchors]


def parse_anchor(raw: object, identity: str | None = None) -> Anchor:
    """Validate one stored anchor.

    Args:
        raw: Decoded JSON for a single anchor.
        identity: When given, the anchor must belong to this document.

    Raises:
        MalformedAnchor: If fields are missing/invalid or the document differs.
    """
    try:
        anchor = Anchor.model_validate(raw)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) or "<root>"
            for error in exc.errors()
        )
        msg = f"Invalid anchor data ({fields})"
        raise MalformedAnchor(msg, identity) from exc
    if identity is not None and anchor.document != identity:
        msg = f"Anchor {anchor.id} belongs to {anchor.document!r}, not {identity!r}"
        raise MalformedAnchor(msg, identity)
    return anchor
