# Accessibility tree -> virtual filesystem mapper
# Created: 2026-03-02
# Changes:
#   - 2026-03-04: Iterative flattening with an explicit visited set.
#   - 2026-03-09: Collision-proof sibling deduplication, snapshot_stats for debug.
#
# Turns the raw node list from Chrome DevTools Accessibility.getFullAXTree into
# directory listings: containers become directories, everything else a file.
"""Accessibility tree to virtual filesystem entries."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

# Roles that always behave as directories
CONTAINER_ROLES = frozenset({
    "group", "navigation", "form", "search", "section", "main",
    "complementary", "banner", "contentinfo", "region", "article",
    "list", "listitem", "tree", "treeitem", "tablist", "tabpanel",
    "dialog", "menu", "menubar", "toolbar", "table", "row", "rowgroup",
    "grid", "document", "application", "figure", "feed", "log", "status",
    "timer", "alertdialog", "generic", "WebArea", "RootWebArea", "Iframe",
    "IframePresentational",
})

# Roles that are always leaves, even when they have children
INTERACTIVE_ROLES = frozenset({
    "button", "link", "textbox", "checkbox", "radio", "combobox",
    "menuitem", "menuitemcheckbox", "menuitemradio", "option", "switch",
    "tab", "slider", "spinbutton", "searchbox",
})

ROLE_SUFFIXES: dict[str, str] = {
    "button": "_btn",
    "link": "_link",
    "textbox": "_input",
    "checkbox": "_chk",
    "radio": "_radio",
    "combobox": "_select",
    "menuitem": "_item",
    "tab": "_tab",
    "slider": "_slider",
    "searchbox": "_search",
    "switch": "_switch",
    "img": "_img",
    "image": "_img",
    "heading": "_heading",
}

STRUCTURAL_ROLES = frozenset({"none", "Ignored"})
ROOT_ROLES = frozenset({"RootWebArea", "WebArea"})
IFRAME_ROLES = frozenset({"Iframe", "IframePresentational"})

MAX_NAME_LENGTH = 40

_DROP_CHARS = re.compile(r"[^a-z0-9\s_-]")
_WHITESPACE = re.compile(r"\s+")


def _ax_value(prop: Any) -> str:
    """Unwrap a DevTools AXValue ({"type": ..., "value": ...}) to a string."""
    if isinstance(prop, dict):
        prop = prop.get("value")
    if prop is None:
        return ""
    if isinstance(prop, bool):
        return str(prop).lower()
    return str(prop)


@dataclass
class AccessibilityNode:
    """One node of the DevTools accessibility tree.

    Nodes reference each other by id only; a refresh replaces the whole set.
    """

    node_id: str
    role: str = ""
    name: str = ""
    description: str = ""
    value: str | None = None
    child_ids: list[str] = field(default_factory=list)
    ignored: bool = False
    backend_id: int | None = None

    @classmethod
    def from_cdp(cls, data: dict[str, Any], id_prefix: str = "") -> AccessibilityNode:
        """Build a node from an ``Accessibility.getFullAXTree`` entry.

        ``id_prefix`` namespaces iframe trees (``frame_<frameId>_``) so their
        ids cannot collide with the main frame's.
        """
        value = _ax_value(data.get("value"))
        return cls(
            node_id=id_prefix + str(data["nodeId"]),
            role=_ax_value(data.get("role")),
            name=_ax_value(data.get("name")),
            description=_ax_value(data.get("description")),
            value=value or None,
            child_ids=[id_prefix + str(c) for c in data.get("childIds", [])],
            ignored=bool(data.get("ignored", False)),
            backend_id=data.get("backendDOMNodeId"),
        )

    @property
    def is_transparent(self) -> bool:
        """Structural-only nodes whose children are spliced into the parent."""
        if self.ignored or self.role in STRUCTURAL_ROLES:
            return True
        return self.role == "generic" and not self.name


NodeMap = dict[str, AccessibilityNode]


@dataclass(frozen=True)
class VirtualEntry:
    """A named file or directory in one sibling listing."""

    node_id: str
    name: str
    role: str
    is_container: bool
    backend_id: int | None = None
    value: str | None = None

    @property
    def is_interactive(self) -> bool:
        return self.role in INTERACTIVE_ROLES

    @property
    def kind(self) -> str:
        if self.is_container:
            return "directory"
        return "interactive" if self.is_interactive else "static"

    @property
    def type_prefix(self) -> str:
        if self.is_container:
            return "[d]"
        return "[x]" if self.is_interactive else "[-]"

    @property
    def display_name(self) -> str:
        return f"{self.name}/" if self.is_container else self.name


def slugify(text: str) -> str:
    """Lower-case, drop punctuation, join words with ``_``, cap at 40 chars."""
    text = _DROP_CHARS.sub("", text.lower()).strip()
    return _WHITESPACE.sub("_", text)[:MAX_NAME_LENGTH]


def generate_name(node: AccessibilityNode) -> str:
    """Readable file name for a node, before sibling deduplication."""
    suffix = ROLE_SUFFIXES.get(node.role, "")
    for text in (node.name, node.description):
        slug = slugify(text) if text else ""
        if slug:
            return slug + suffix
    return f"{node.role or 'unknown'}_{node.node_id}{suffix}"


def is_container(node: AccessibilityNode) -> bool:
    if node.role in CONTAINER_ROLES:
        return True
    return bool(node.child_ids) and node.role not in INTERACTIVE_ROLES


def to_entry(node: AccessibilityNode, name: str | None = None) -> VirtualEntry:
    return VirtualEntry(
        node_id=node.node_id,
        name=name or generate_name(node),
        role=node.role,
        is_container=is_container(node),
        backend_id=node.backend_id,
        value=node.value,
    )


def build_node_map(nodes: Iterable[AccessibilityNode]) -> NodeMap:
    """Index nodes by id, ignored ones included so they can be walked through."""
    return {node.node_id: node for node in nodes}


def find_root(node_map: NodeMap) -> AccessibilityNode | None:
    """First RootWebArea/WebArea, else the first node."""
    for node in node_map.values():
        if node.role in ROOT_ROLES:
            return node
    return next(iter(node_map.values()), None)


def count_frames(node_map: NodeMap) -> int:
    return sum(1 for node in node_map.values() if node.role in IFRAME_ROLES)


class _SiblingNames:
    """Hands out unique names: repeats get ``_2``, ``_3``... in encounter order."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._used: set[str] = set()

    def claim(self, base: str) -> str:
        count = self._counts.get(base, 0) + 1
        name = base if count == 1 else f"{base}_{count}"
        while name in self._used:
            count += 1
            name = f"{base}_{count}"
        self._counts[base] = count
        self._used.add(name)
        return name


def _visible_children(parent_id: str, node_map: NodeMap) -> Iterator[AccessibilityNode]:
    parent = node_map.get(parent_id)
    if parent is None:
        return
    visited = {parent_id}
    stack = [iter(parent.child_ids)]
    while stack:
        child_id = next(stack[-1], None)
        if child_id is None:
            stack.pop()
            continue
        child = node_map.get(child_id)
        if child is None:
            continue
        if child.is_transparent:
            if child_id not in visited:
                visited.add(child_id)
                stack.append(iter(child.child_ids))
            continue
        yield child


def child_entries(parent_id: str, node_map: NodeMap) -> list[VirtualEntry]:
    """Ordered, uniquely named entries for the visible children of a node.

    Transparent wrappers are flattened away, so the result never contains an
    ignored, structural or unnamed generic node.
    """
    names = _SiblingNames()
    return [
        to_entry(child, names.claim(generate_name(child)))
        for child in _visible_children(parent_id, node_map)
    ]


def find_child(parent_id: str, name: str, node_map: NodeMap) -> VirtualEntry | None:
    for entry in child_entries(parent_id, node_map):
        if entry.name == name:
            return entry
    return None


@dataclass
class SnapshotStats:
    total: int = 0
    ignored: int = 0
    generic: int = 0
    with_children: int = 0
    iframes: int = 0


def snapshot_stats(node_map: NodeMap) -> SnapshotStats:
    stats = SnapshotStats(total=len(node_map))
    for node in node_map.values():
        if node.ignored:
            stats.ignored += 1
        if node.role == "generic":
            stats.generic += 1
        if node.child_ids:
            stats.with_children += 1
        if node.role in IFRAME_ROLES:
            stats.iframes += 1
    return stats


__all__ = [
    "AccessibilityNode",
    "VirtualEntry",
    "NodeMap",
    "SnapshotStats",
    "CONTAINER_ROLES",
    "INTERACTIVE_ROLES",
    "ROLE_SUFFIXES",
    "slugify",
    "generate_name",
    "is_container",
    "to_entry",
    "build_node_map",
    "find_root",
    "count_frames",
    "child_entries",
    "find_child",
    "snapshot_stats",
]
