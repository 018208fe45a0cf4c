"""Tests for structural address encoding and decoding."""

from __future__ import annotations

from highlightkeeper.anchoring.models import AddressStep, NodeKind
from highlightkeeper.anchoring.path_codec import decode_address, encode_address
from highlightkeeper.anchoring.tree import Document, element


def _doc(*children) -> Document:
    return Document(element("body", *children))


class TestEncodeAddress:
    """Tests for encode_address."""

    def test_steps_run_root_to_node(self) -> None:
        """Steps are ordered from the content root down, root excluded."""
        doc = _doc(element("div", element("p", "one"), element("p", "two")))
        target = doc.root.children[0].children[1].children[0]

        address = encode_address(doc, target)

        assert [step.tag_name for step in address] == ["div", "p", None]
        assert address[1].ordinal == 1
        assert address[1].type_ordinal == 1
        assert address[2].node_kind is NodeKind.TEXT
        assert address[2].text_fragment == "two"

    def test_type_ordinal_counts_same_tag_only(self) -> None:
        doc = _doc(element("img"), element("p", "x"), element("img"), element("p", "y"))
        target = doc.root.children[3]

        (step,) = encode_address(doc, target)

        assert step.ordinal == 3
        assert step.type_ordinal == 1

    def test_records_id_and_class(self) -> None:
        doc = _doc(element("section", "x", id="main", class_="content"))
        (step,) = encode_address(doc, doc.root.children[0])
        assert step.element_id == "main"
        assert step.css_class == "content"

    def test_fragment_truncated(self) -> None:
        doc = _doc(element("p", "a" * 80))
        address = encode_address(doc, doc.root.children[0].children[0])
        assert address[-1].text_fragment == "a" * 50

    def test_content_root_encodes_empty(self) -> None:
        doc = _doc(element("p", "x"))
        assert encode_address(doc, doc.root) == []


class TestDecodeAddress:
    """Tests for decode_address."""

    def test_round_trip_unchanged_tree(self) -> None:
        doc = _doc(element("div", element("p", "one"), element("p", "two")))
        target = doc.root.children[0].children[1].children[0]
        assert decode_address(doc, encode_address(doc, target)) is target

    def test_stable_under_unrelated_sibling_insertion(self) -> None:
        """A new sibling with a different tag does not shift same-type ordinals."""
        doc = _doc(element("div", element("p", "one"), element("p", "two")))
        container = doc.root.children[0]
        target = container.children[1].children[0]
        address = encode_address(doc, target)

        container.insert(0, element("img", src="ad.png"))
        doc.root.insert(0, element("aside", "Sponsored"))

        assert decode_address(doc, address) is target

    def test_id_survives_restructuring(self) -> None:
        """An id jumps straight to the element wherever it moved."""
        doc = _doc(element("div", element("p", "x"), id="main"))
        address = encode_address(doc, doc.root.children[0].children[0])

        moved = _doc(element("section", element("div", element("p", "x"), id="main")))

        found = decode_address(moved, address)
        assert found is not None
        assert found.tag == "p"
        assert found.parent is not None
        assert found.parent.element_id == "main"

    def test_text_fragment_finds_shifted_text(self) -> None:
        """A text node is found by its fragment when its ordinals moved."""
        doc = _doc(element("p", "hello world", element("b", "x"), "tail text"))
        address = encode_address(doc, doc.root.children[0].children[2])

        edited = _doc(element("p", element("b", "x"), "tail text"))

        found = decode_address(edited, address)
        assert found is not None
        assert found.data == "tail text"

    def test_unresolvable_address_returns_none(self) -> None:
        doc = _doc(element("p", "x"))
        address = [
            AddressStep(ordinal=4, type_ordinal=4, node_kind=NodeKind.ELEMENT, tag_name="ul")
        ]
        assert decode_address(doc, address) is None

    def test_failure_at_depth_is_not_partial(self) -> None:
        """A failing inner step yields None, never the last good ancestor."""
        doc = _doc(element("div", element("p", "x")))
        address = encode_address(doc, doc.root.children[0].children[0])
        address.append(
            AddressStep(ordinal=9, type_ordinal=9, node_kind=NodeKind.TEXT)
        )
        assert decode_address(doc, address) is None
