"""Content-based node lookup, used when structural addresses fail.

Both finders are lazy generators in document order; callers usually take
only the first match.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from highlightkeeper.anchoring.tree import SKIP_TAGS, iter_elements

if TYPE_CHECKING:
    from collections.abc import Iterator

    from highlightkeeper.anchoring.tree import TreeNode, TreeQuery

logger = logging.getLogger(__name__)

# Block-ish containers scanned by context matching
CONTEXT_TAGS = frozenset(
    ("p", "div", "span", "li", "td", "th", "h1", "h2", "h3", "h4", "h5", "h6")
)

DEFAULT_TARGET_RATIO = 1.5
DEFAULT_CONTEXT_RATIO = 1.5

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_whitespace(value: str) -> str:
    """Collapse whitespace runs to one space and trim."""
    return _WHITESPACE_RUN.sub(" ", value).strip()


def whitespace_tolerant_pattern(value: str) -> re.Pattern[str] | None:
    """Regex matching *value* with any whitespace run in place of each gap."""
    words = normalize_whitespace(value).split(" ")
    if words == [""]:
        return None
    return re.compile(r"\s+".join(re.escape(word) for word in words))


def text_nodes(tree: TreeQuery, root: TreeNode) -> Iterator[TreeNode]:
    """Text nodes under *root*, skipping script-like subtrees."""
    stack = list(reversed(tree.children(root)))
    while stack:
        node = stack.pop()
        if node.is_text:
            yield node
        elif node.tag not in SKIP_TAGS:
            stack.extend(reversed(tree.children(node)))


def find_nodes_containing(
    tree: TreeQuery, needle: str, root: TreeNode | None = None
) -> Iterator[TreeNode]:
    """Yield text nodes whose own content contains *needle* literally.

    Args:
        tree: Tree to search.
        needle: Substring to look for; an empty needle matches nothing.
        root: Subtree to search (default: the content root).
    """
    if not needle:
        return
    start = tree.root if root is None else root
    for node in text_nodes(tree, start):
        if needle in tree.text_of(node):
            yield node


def find_by_context(
    tree: TreeQuery,
    context: str,
    target: str,
    *,
    target_ratio: float = DEFAULT_TARGET_RATIO,
    context_ratio: float = DEFAULT_CONTEXT_RATIO,
) -> Iterator[TreeNode]:
    """Yield text nodes inside containers that look like the original context.

    A container qualifies when its normalised text contains the normalised
    target and its length lies strictly between ``len(target) *
    target_ratio`` and ``len(context) * context_ratio``.  The band rejects
    page-sized wrappers (body, main layout divs) as well as containers that
    hold little more than the target itself.

    For each qualifying container the first text descendant whose
    normalised content contains the target is yielded.  A node reachable
    through nested containers is yielded once.
    """
    clean_context = normalize_whitespace(context)
    clean_target = normalize_whitespace(target)
    if not clean_target:
        return

    lower = len(clean_target) * target_ratio
    upper = len(clean_context) * context_ratio
    seen: set[int] = set()

    for container in iter_elements(tree, CONTEXT_TAGS):
        container_text = normalize_whitespace(tree.text_of(container))
        if clean_target not in container_text:
            continue
        if not lower < len(container_text) < upper:
            logger.debug(
                "Context container <%s> rejected: length %d outside (%.1f, %.1f)",
                container.tag,
                len(container_text),
                lower,
                upper,
            )
            continue

        for node in text_nodes(tree, container):
            if clean_target in normalize_whitespace(tree.text_of(node)):
                if id(node) not in seen:
                    seen.add(id(node))
                    yield node
                break
