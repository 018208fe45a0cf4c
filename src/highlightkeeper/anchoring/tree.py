"""In-memory document tree for anchoring.

HTML is parsed with selectolax (Lexbor backend) and copied into a small
mutable node tree.  Anchoring needs to split text nodes, wrap ranges in
marker elements and unwrap them again; doing that on plain Python objects
keeps the mutation semantics identical to the browser DOM without relying on
parser-specific editing APIs.

Traversal helpers are written against the ``TreeQuery`` protocol so path
encoding and text search can run on synthetic trees built with
``element()``/``text()``.
"""

# Pattern: Functional Core (tree queries are pure functions over TreeQuery)

from __future__ import annotations

import html as html_module
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from selectolax.lexbor import LexborHTMLParser

from highlightkeeper.anchoring.errors import DocumentRootMissing

logger = logging.getLogger(__name__)

ELEMENT = "element"
TEXT = "text"

# Text inside these elements is never user-selectable content
SKIP_TAGS = frozenset(("script", "style", "noscript", "template"))

_VOID_TAGS = frozenset(
    (
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    )
)

_RAW_TEXT_TAGS = frozenset(("script", "style"))


@dataclass(eq=False)
class TreeNode:
    """A single element or text node.

    Identity semantics (``eq=False``): two nodes are equal only if they are
    the same object, matching DOM node identity.
    """

    kind: str
    tag: str | None = None
    attributes: dict[str, str | None] = field(default_factory=dict)
    data: str = ""
    parent: TreeNode | None = field(default=None, repr=False)
    children: list[TreeNode] = field(default_factory=list, repr=False)

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT

    @property
    def element_id(self) -> str | None:
        return self.attributes.get("id") or None

    @property
    def css_class(self) -> str | None:
        return self.attributes.get("class") or None

    def text_content(self) -> str:
        """Concatenated text of this node and all descendants."""
        if self.is_text:
            return self.data
        parts: list[str] = []
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            if node.is_text:
                parts.append(node.data)
            else:
                stack.extend(reversed(node.children))
        return "".join(parts)

    def index(self) -> int:
        """Position of this node among its parent's children."""
        if self.parent is None:
            msg = "Detached node has no index"
            raise ValueError(msg)
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        msg = "Node not found among its parent's children"
        raise ValueError(msg)

    def insert(self, position: int, child: TreeNode) -> None:
        """Insert *child* at *position*, detaching it from any old parent."""
        if child.parent is not None:
            child.detach()
        child.parent = self
        self.children.insert(position, child)

    def append(self, child: TreeNode) -> None:
        self.insert(len(self.children), child)

    def detach(self) -> None:
        """Remove this node from its parent."""
        if self.parent is None:
            return
        del self.parent.children[self.index()]
        self.parent = None

    def replace_with(self, replacement: TreeNode) -> None:
        parent = self.parent
        if parent is None:
            msg = "Cannot replace a detached node"
            raise ValueError(msg)
        position = self.index()
        self.detach()
        parent.insert(position, replacement)

    def shallow_clone(self) -> TreeNode:
        return TreeNode(
            kind=self.kind,
            tag=self.tag,
            attributes=dict(self.attributes),
            data=self.data,
        )

    def is_inclusive_ancestor_of(self, other: TreeNode) -> bool:
        node: TreeNode | None = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False


def element(tag: str, *children: TreeNode | str, **attributes: str) -> TreeNode:
    """Build an element node; string children become text nodes.

    ``class_`` is accepted for the reserved ``class`` attribute.
    """
    attrs: dict[str, str | None] = {
        key.rstrip("_").replace("_", "-"): value for key, value in attributes.items()
    }
    node = TreeNode(kind=ELEMENT, tag=tag, attributes=attrs)
    for child in children:
        node.append(text(child) if isinstance(child, str) else child)
    return node


def text(data: str) -> TreeNode:
    return TreeNode(kind=TEXT, data=data)


class TreeQuery(Protocol):
    """Capability set the path codec and text locator rely on."""

    @property
    def root(self) -> TreeNode:
        """The content root addresses are relative to."""
        ...

    def children(self, node: TreeNode) -> Sequence[TreeNode]: ...

    def parent(self, node: TreeNode) -> TreeNode | None: ...

    def text_of(self, node: TreeNode) -> str: ...

    def find_by_id(self, element_id: str) -> TreeNode | None: ...


def descendants(tree: TreeQuery, node: TreeNode) -> Iterator[TreeNode]:
    """Yield all descendants of *node* in document (pre-)order."""
    stack = list(reversed(tree.children(node)))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(tree.children(current)))


def iter_elements(
    tree: TreeQuery, tags: frozenset[str], node: TreeNode | None = None
) -> Iterator[TreeNode]:
    """Yield elements under *node* (default: content root) whose tag is in *tags*."""
    start = tree.root if node is None else node
    for current in descendants(tree, start):
        if not current.is_text and current.tag in tags:
            yield current


class Document:
    """A parsed HTML document with ``<body>`` as its content root.

    Implements ``TreeQuery``.
    """

    def __init__(
        self,
        root: TreeNode,
        *,
        document_element: TreeNode | None = None,
        title: str = "",
    ) -> None:
        self._root = root
        self.document_element = document_element or root
        self.title = title

    @classmethod
    def from_html(cls, html: str) -> Document:
        """Parse *html* into a Document.

        Raises:
            DocumentRootMissing: If the parser produced no ``<body>``.
        """
        tree = LexborHTMLParser(html)
        if tree.root is None or tree.body is None:
            msg = "Document has no <body> content root"
            raise DocumentRootMissing(msg)

        body: TreeNode | None = None
        document_element = _copy_element(tree.root)
        pending: list[tuple[Any, TreeNode]] = [(tree.root, document_element)]
        while pending:
            source, converted = pending.pop()
            if source.tag == "body" and body is None:
                body = converted
            child = source.child
            while child is not None:
                tag = child.tag
                if tag == "-text":
                    converted.append(text(child.text_content or ""))
                elif tag and tag[0].isalpha():
                    copied = _copy_element(child)
                    converted.append(copied)
                    pending.append((child, copied))
                # comments, doctype and other non-element nodes are dropped
                child = child.next

        if body is None:
            msg = "Document has no <body> content root"
            raise DocumentRootMissing(msg)

        title_node = tree.css_first("title")
        title = title_node.text(strip=True) if title_node is not None else ""
        logger.debug("Parsed document (%d bytes, title=%r)", len(html), title)
        return cls(body, document_element=document_element, title=title)

    # -- TreeQuery ---------------------------------------------------------

    @property
    def root(self) -> TreeNode:
        return self._root

    def children(self, node: TreeNode) -> Sequence[TreeNode]:
        return node.children

    def parent(self, node: TreeNode) -> TreeNode | None:
        return node.parent

    def text_of(self, node: TreeNode) -> str:
        return node.text_content()

    def find_by_id(self, element_id: str) -> TreeNode | None:
        for node in descendants(self, self.document_element):
            if not node.is_text and node.attributes.get("id") == element_id:
                return node
        return None

    # -- Serialisation -----------------------------------------------------

    def body_html(self) -> str:
        return "".join(to_html(child) for child in self._root.children)

    def html(self) -> str:
        return "<!DOCTYPE html>" + to_html(self.document_element)


def _copy_element(node: Any) -> TreeNode:
    return TreeNode(kind=ELEMENT, tag=node.tag, attributes=dict(node.attributes))


def _format_attributes(attributes: dict[str, str | None]) -> str:
    parts = []
    for name, value in attributes.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html_module.escape(value, quote=True)}"')
    return "".join(parts)


def to_html(node: TreeNode, *, raw_text: bool = False) -> str:
    """Serialise *node* and its subtree to HTML."""
    parts: list[str] = []
    # Entries are either (node, raw_text) pairs or closing tags
    stack: list[tuple[TreeNode, bool] | str] = [(node, raw_text)]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
            continue
        current, raw = item
        if current.is_text:
            parts.append(
                current.data if raw else html_module.escape(current.data, quote=False)
            )
            continue
        tag = current.tag or ""
        parts.append(f"<{tag}{_format_attributes(current.attributes)}>")
        if tag in _VOID_TAGS:
            continue
        stack.append(f"</{tag}>")
        child_raw = tag in _RAW_TEXT_TAGS
        stack.extend((child, child_raw) for child in reversed(current.children))
    return "".join(parts)
