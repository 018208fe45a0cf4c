"""Structural addresses: node <-> root-relative path of AddressSteps.

Each step records several independent signals (id, same-type ordinal, text
fragment, raw ordinal).  Decoding tries them from most to least robust, so
an address keeps resolving when unrelated siblings (ads, tracking pixels,
injected widgets) are added around the target.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.errors import AddressDecodeFailure
from highlightkeeper.anchoring.models import (
    TEXT_FRAGMENT_LENGTH,
    AddressStep,
    NodeKind,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from highlightkeeper.anchoring.models import StructuralAddress
    from highlightkeeper.anchoring.tree import TreeNode, TreeQuery

logger = logging.getLogger(__name__)


def _node_kind(node: TreeNode) -> NodeKind:
    return NodeKind.TEXT if node.is_text else NodeKind.ELEMENT


def _same_type(node: TreeNode, kind: NodeKind, tag: str | None) -> bool:
    return _node_kind(node) == kind and node.tag == tag


def _index_of(nodes: Sequence[TreeNode], node: TreeNode) -> int:
    for i, candidate in enumerate(nodes):
        if candidate is node:
            return i
    msg = "Node missing from its parent's children"
    raise ValueError(msg)


def encode_address(
    tree: TreeQuery,
    node: TreeNode,
    *,
    fragment_length: int = TEXT_FRAGMENT_LENGTH,
) -> StructuralAddress:
    """Encode *node* as a root-to-node list of steps (root excluded).

    Walking stops at the content root, or at the top of a detached subtree.
    """
    steps: list[AddressStep] = []
    current = node
    while current is not tree.root:
        parent = tree.parent(current)
        if parent is None:
            break

        siblings = tree.children(parent)
        kind = _node_kind(current)
        same_type = [s for s in siblings if _same_type(s, kind, current.tag)]

        fragment = None
        if current.is_text:
            fragment = tree.text_of(current)[:fragment_length] or None

        steps.append(
            AddressStep(
                ordinal=_index_of(siblings, current),
                type_ordinal=_index_of(same_type, current),
                node_kind=kind,
                tag_name=current.tag,
                css_class=None if current.is_text else current.css_class,
                element_id=None if current.is_text else current.element_id,
                text_fragment=fragment,
            )
        )
        current = parent

    steps.reverse()
    return steps


def _follow_step(
    tree: TreeQuery, current: TreeNode, step: AddressStep, depth: int
) -> TreeNode:
    """Pick the child of *current* that *step* describes."""
    # 1. ids are unique and survive restructuring
    if step.element_id:
        by_id = tree.find_by_id(step.element_id)
        if by_id is not None:
            return by_id

    children = tree.children(current)

    # 2. position among same-type siblings
    same_type = [c for c in children if _same_type(c, step.node_kind, step.tag_name)]
    if 0 <= step.type_ordinal < len(same_type):
        return same_type[step.type_ordinal]

    # 3. text nodes carry a fragment of their content
    if step.node_kind == NodeKind.TEXT and step.text_fragment:
        for child in children:
            if child.is_text and step.text_fragment in tree.text_of(child):
                return child

    # 4. raw position
    if 0 <= step.ordinal < len(children):
        return children[step.ordinal]

    msg = (
        f"No child matches step {step.node_kind}/{step.tag_name} "
        f"(ordinal={step.ordinal}, type_ordinal={step.type_ordinal})"
    )
    raise AddressDecodeFailure(msg, depth)


def decode_address(tree: TreeQuery, address: Sequence[AddressStep]) -> TreeNode | None:
    """Resolve *address* from the content root.

    Returns:
        The addressed node, or None if any step fails.  A failing address is
        never partially applied.
    """
    current = tree.root
    for depth, step in enumerate(address):
        try:
            current = _follow_step(tree, current, step, depth)
        except AddressDecodeFailure as exc:
            # Expected under normal document drift
            logger.debug("Address no longer resolves at depth %d: %s", exc.depth, exc)
            return None
    return current
