from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .audit_loader import AuditEvent
from .event_details import format_label

logger = logging.getLogger(__name__)

ROOT_LABEL = "all"


@dataclass
class TreeNode:
    """
    Node of the aggregation tree. A parent owns its children outright; nodes are never shared.

    `value` of a node with children is the sum of the children's values once the tree is built.
    """

    name: str
    value: int = 0
    children: List["TreeNode"] = field(default_factory=list)

    def walk(self) -> Iterator["TreeNode"]:
        """Pre-order traversal including this node."""
        yield self
        for child in self.children:
            yield from child.walk()

    def update_values(self) -> int:
        if not self.children:
            return self.value
        self.value = sum(child.update_values() for child in self.children)
        return self.value

    def find_path(self, path: Sequence[str]) -> Optional["TreeNode"]:
        """
        Resolve a label path starting with this node's own label.

        Duplicate sibling labels resolve to the first match.
        """
        if not path or path[0] != self.name:
            return None
        node = self
        for label in path[1:]:
            node = next((child for child in node.children if child.name == label), None)
            if node is None:
                return None
        return node


def _build_event_node(event: AuditEvent) -> TreeNode:
    node = TreeNode(name=format_label(event), value=1)
    node.children = [_build_event_node(span) for span in event.spans]
    return node


def build_tree(events: Sequence[AuditEvent]) -> TreeNode:
    """
    Aggregate an event forest into a single weighted tree.

    The root groups events by context (first-seen order); below each context the events
    keep their recorded nesting and order.
    """
    root = TreeNode(name=ROOT_LABEL, value=0)

    by_context: Dict[str, List[AuditEvent]] = {}
    for event in events:
        by_context.setdefault(event.context, []).append(event)

    for context, context_events in by_context.items():
        context_node = TreeNode(name=context, value=len(context_events))
        context_node.children = [_build_event_node(event) for event in context_events]
        root.children.append(context_node)

    root.update_values()
    logger.debug("Built aggregation tree: %d contexts, total weight %d.", len(root.children), root.value)
    return root


@dataclass(frozen=True)
class TreeRow:
    """Detached copy of a tree node for list views. `path` runs from the true root down to this row."""

    name: str
    count: str
    value: int
    path: Tuple[str, ...]
    children: Tuple["TreeRow", ...] = ()


def _project(node: TreeNode, parent_path: Tuple[str, ...]) -> TreeRow:
    path = parent_path + (node.name,)
    return TreeRow(
        name=node.name,
        count=str(node.value),
        value=node.value,
        path=path,
        children=tuple(_project(child, path) for child in node.children),
    )


def project_tree(node: TreeNode, node_path: Optional[Sequence[str]] = None) -> List[TreeRow]:
    """
    Project the children of a display root into rows for a hierarchical list.

    `node_path` is the label path of `node` from the true root; defaults to just its own label.
    """
    base = tuple(node_path) if node_path else (node.name,)
    return [_project(child, base) for child in node.children]
