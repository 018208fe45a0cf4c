"""DOM-style ranges over the anchoring tree.

A ``TextRange`` has two boundary points, each a ``(container, offset)``
pair: the offset counts characters when the container is a text node and
child positions when it is an element, exactly like the browser Range API.

Three mutations are supported, mirroring ``Range.surroundContents``,
``Range.extractContents`` and ``Range.insertNode``.  Each validates the range
before touching the tree, so a failure never leaves a partial edit behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.errors import WrapFailure
from highlightkeeper.anchoring.tree import TreeNode, text

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass
class TextRange:
    """A contiguous range between two boundary points."""

    start_container: TreeNode
    start_offset: int
    end_container: TreeNode
    end_offset: int

    @classmethod
    def select_node_contents(cls, node: TreeNode) -> TextRange:
        """Range covering everything inside *node*."""
        end = len(node.data) if node.is_text else len(node.children)
        return cls(node, 0, node, end)

    @property
    def collapsed(self) -> bool:
        return (
            self.start_container is self.end_container
            and self.start_offset == self.end_offset
        )

    def common_ancestor(self) -> TreeNode | None:
        node: TreeNode | None = self.start_container
        while node is not None:
            if node.is_inclusive_ancestor_of(self.end_container):
                return node
            node = node.parent
        return None

    def text(self) -> str:
        """The selected text, like ``Range.toString()``."""
        common = self.common_ancestor()
        if common is None:
            return ""
        if self.start_container is self.end_container and common.is_text:
            return common.data[self.start_offset : self.end_offset]

        start = _position(self.start_container, self.start_offset)
        end = _position(self.end_container, self.end_offset)
        parts: list[str] = []
        for node in _text_nodes(common):
            if node is not self.start_container and _position(node, 0) < start:
                continue
            if node is not self.end_container and _position(node, len(node.data)) > end:
                continue
            lo = self.start_offset if node is self.start_container else 0
            hi = self.end_offset if node is self.end_container else len(node.data)
            parts.append(node.data[lo:hi])
        return "".join(parts)


def _text_nodes(node: TreeNode) -> Iterator[TreeNode]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_text:
            yield current
        else:
            stack.extend(reversed(current.children))


def _path(node: TreeNode) -> tuple[int, ...]:
    indices: list[int] = []
    current = node
    while current.parent is not None:
        indices.append(current.index())
        current = current.parent
    return tuple(reversed(indices))


def _position(container: TreeNode, offset: int) -> tuple[int, ...]:
    """Comparable document position of a boundary point."""
    return (*_path(container), offset)


def _length(node: TreeNode) -> int:
    return len(node.data) if node.is_text else len(node.children)


def validate_range(rng: TextRange) -> TreeNode:
    """Check that *rng* is well formed and return its common ancestor.

    Raises:
        WrapFailure: If offsets are out of bounds, the boundaries live in
            different trees, or the start lies after the end.
    """
    for container, offset in (
        (rng.start_container, rng.start_offset),
        (rng.end_container, rng.end_offset),
    ):
        if not 0 <= offset <= _length(container):
            msg = f"Offset {offset} out of bounds for {container.kind} node"
            raise WrapFailure(msg)

    common = rng.common_ancestor()
    if common is None:
        msg = "Range boundaries are not in the same tree"
        raise WrapFailure(msg)

    start = _position(rng.start_container, rng.start_offset)
    end = _position(rng.end_container, rng.end_offset)
    if start > end:
        msg = "Range start lies after its end"
        raise WrapFailure(msg)
    return common


def split_text(node: TreeNode, offset: int) -> TreeNode:
    """Split text *node* at *offset*; return the new node holding the tail."""
    tail = text(node.data[offset:])
    node.data = node.data[:offset]
    if node.parent is not None:
        node.parent.insert(node.index() + 1, tail)
    return tail


def _boundary_parent(container: TreeNode) -> TreeNode | None:
    return container.parent if container.is_text else container


def _node_after_boundary(container: TreeNode, offset: int) -> TreeNode | None:
    """Split at a boundary and return the first node after it (None = end)."""
    if container.is_text:
        if offset <= 0:
            return container
        if offset >= len(container.data):
            parent = container.parent
            assert parent is not None
            position = container.index() + 1
            if position < len(parent.children):
                return parent.children[position]
            return None
        return split_text(container, offset)
    if offset < len(container.children):
        return container.children[offset]
    return None


def surround_contents(rng: TextRange, wrapper: TreeNode) -> None:
    """Move the range's contents into *wrapper* and put it in their place.

    Raises:
        WrapFailure: If the range partially selects an element, i.e. the two
            boundaries do not sit under the same parent once text nodes are
            split.  The tree is left untouched in that case.
    """
    validate_range(rng)
    parent = _boundary_parent(rng.start_container)
    if parent is None or parent is not _boundary_parent(rng.end_container):
        msg = "Range partially selects an element and cannot be wrapped"
        raise WrapFailure(msg)

    # End first: splitting it keeps the original node as the head, so the
    # start boundary stays valid even when both share one text node.
    end_ref = _node_after_boundary(rng.end_container, rng.end_offset)
    start_ref = _node_after_boundary(rng.start_container, rng.start_offset)

    start_index = start_ref.index() if start_ref is not None else len(parent.children)
    end_index = end_ref.index() if end_ref is not None else len(parent.children)

    contents = parent.children[start_index:end_index]
    for node in contents:
        node.detach()
    for node in contents:
        wrapper.append(node)
    parent.insert(start_index, wrapper)


def _contained_children(
    common: TreeNode, rng: TextRange
) -> tuple[TreeNode | None, list[TreeNode], TreeNode | None]:
    """Split *common*'s children into first-partial, contained, last-partial."""

    def _child_of_common(node: TreeNode) -> TreeNode:
        while node.parent is not common:
            assert node.parent is not None
            node = node.parent
        return node

    first_partial = None
    if not rng.start_container.is_inclusive_ancestor_of(rng.end_container):
        first_partial = _child_of_common(rng.start_container)
    last_partial = None
    if not rng.end_container.is_inclusive_ancestor_of(rng.start_container):
        last_partial = _child_of_common(rng.end_container)

    start_index = (
        first_partial.index() + 1 if first_partial is not None else rng.start_offset
    )
    end_index = last_partial.index() if last_partial is not None else rng.end_offset
    return first_partial, common.children[start_index:end_index], last_partial


def extract_contents(rng: TextRange) -> tuple[list[TreeNode], TreeNode, int]:
    """Remove the range's contents from the tree.

    Partially selected elements are split: the selected part is cloned into
    the returned fragment and the rest stays in place.

    Returns:
        ``(fragment, container, offset)``: the extracted nodes and the
        collapsed boundary point where they used to start.

    Raises:
        WrapFailure: If the range is malformed.
    """
    common = validate_range(rng)

    if rng.start_container is rng.end_container and rng.start_container.is_text:
        node = rng.start_container
        fragment = [text(node.data[rng.start_offset : rng.end_offset])]
        node.data = node.data[: rng.start_offset] + node.data[rng.end_offset :]
        return fragment, node, rng.start_offset

    first_partial, contained, last_partial = _contained_children(common, rng)

    # Insertion point: either the start boundary itself, or just after the
    # start's ancestor that remains in place under the common ancestor.
    reference: TreeNode | None = None
    new_container: TreeNode | None = rng.start_container
    new_offset = rng.start_offset
    if not rng.start_container.is_inclusive_ancestor_of(rng.end_container):
        reference = rng.start_container
        while reference.parent is not None and not (
            reference.parent.is_inclusive_ancestor_of(rng.end_container)
        ):
            reference = reference.parent
        new_container = reference.parent

    fragment: list[TreeNode] = []

    if first_partial is not None:
        if first_partial.is_text:
            fragment.append(text(first_partial.data[rng.start_offset :]))
            first_partial.data = first_partial.data[: rng.start_offset]
        else:
            clone = first_partial.shallow_clone()
            inner, _, _ = extract_contents(
                TextRange(
                    rng.start_container,
                    rng.start_offset,
                    first_partial,
                    len(first_partial.children),
                )
            )
            for node in inner:
                clone.append(node)
            fragment.append(clone)

    for node in contained:
        node.detach()
        fragment.append(node)

    if last_partial is not None:
        if last_partial.is_text:
            fragment.append(text(last_partial.data[: rng.end_offset]))
            last_partial.data = last_partial.data[rng.end_offset :]
        else:
            clone = last_partial.shallow_clone()
            inner, _, _ = extract_contents(
                TextRange(last_partial, 0, rng.end_container, rng.end_offset)
            )
            for node in inner:
                clone.append(node)
            fragment.append(clone)

    assert new_container is not None
    if reference is not None:
        new_offset = reference.index() + 1
    return fragment, new_container, new_offset


def insert_node(container: TreeNode, offset: int, node: TreeNode) -> None:
    """Insert *node* at a boundary point, splitting a text container."""
    if container.is_text:
        parent = container.parent
        if parent is None:
            msg = "Cannot insert into a detached text node"
            raise WrapFailure(msg)
        if offset <= 0:
            parent.insert(container.index(), node)
        else:
            if offset < len(container.data):
                split_text(container, offset)
            parent.insert(container.index() + 1, node)
        return
    container.insert(offset, node)
