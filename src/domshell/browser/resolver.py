# Namespace resolver: path algebra over mapper output plus browser addressing.
# Created: 2026-03-03
# Changes:
#   - 2026-03-06: Window-scoped tab matching for windows/<w>/<tab> paths.
#   - 2026-03-10: Depth-first search() shared by grep -r and find.
#   - 2026-03-12: walk_path() with ./.. handling; the kernel's cd and every
#     path-taking command resolve through it.

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from domshell.browser.protocol import TabInfo, WindowInfo
from domshell.browser.snapshot import (
    NodeMap,
    VirtualEntry,
    child_entries,
    find_child,
    to_entry,
)
from domshell.errors import NoSuchEntry, NotADirectory

TABS = "tabs"
WINDOWS = "windows"


def split_segments(path: str) -> list[str]:
    """``"a//b/"`` -> ``["a", "b"]``."""
    return [seg for seg in path.split("/") if seg]


def is_number(segment: str) -> bool:
    """ASCII decimal ids only (``"²"`` passes str.isdigit but not int())."""
    return segment.isascii() and segment.isdecimal()


def not_a_directory(entry: VirtualEntry) -> NotADirectory:
    return NotADirectory(f"{entry.name}: Not a directory (type: {entry.type_prefix} {entry.role})")


@dataclass
class PathWalk:
    """Where a walk ended: node-id chain, DOM names and the last entry.

    ``chain[0]`` is the anchor (the snapshot root for sessions) and ``names``
    holds one name per further chain element. ``entry`` is None when the
    walk ended on ``..`` or walked nothing.
    """

    chain: list[str]
    names: list[str]
    entry: VirtualEntry | None = None

    def target(self, node_map: NodeMap) -> VirtualEntry:
        if self.entry is not None:
            return self.entry
        node = node_map.get(self.chain[-1]) if self.chain else None
        if node is None:
            raise NoSuchEntry("current node is not in the tree")
        return to_entry(node, name=self.names[-1] if self.names else None)


def walk_path(
    chain: Sequence[str],
    names: Sequence[str],
    path: str,
    node_map: NodeMap,
    *,
    containers_only: bool = False,
) -> PathWalk:
    """Walk ``path`` from the end of ``chain``.

    ``.`` is skipped and ``..`` steps back, but never above the anchor.
    Raises NoSuchEntry on the first segment that does not resolve and
    NotADirectory when a leaf is followed by more path; with
    ``containers_only`` every segment must be a directory.
    """
    walk = PathWalk(list(chain), list(names))
    for segment in split_segments(path):
        if segment == ".":
            continue
        if segment == "..":
            if len(walk.chain) <= 1:
                raise NoSuchEntry("..: already at the tab root")
            walk.chain.pop()
            walk.names.pop()
            walk.entry = None
            continue
        if walk.entry is not None and not walk.entry.is_container:
            raise not_a_directory(walk.entry)
        entry = find_child(walk.chain[-1], segment, node_map) if walk.chain else None
        if entry is None:
            raise NoSuchEntry(f"{segment}: No such file or directory")
        if containers_only and not entry.is_container:
            raise not_a_directory(entry)
        walk.chain.append(entry.node_id)
        walk.names.append(entry.name)
        walk.entry = entry
    return walk


def resolve_path(start_id: str, path: str, node_map: NodeMap) -> VirtualEntry:
    """Resolve ``a/b/c`` below ``start_id``.

    Raises NoSuchEntry on the first segment that does not resolve and
    NotADirectory when a leaf is followed by more path.
    """
    if not split_segments(path):
        raise NoSuchEntry(f"{path!r}: empty path")
    return walk_path([start_id], [], path, node_map).target(node_map)


# ---------------------------------------------------------------------------
# Browser-level addressing
# ---------------------------------------------------------------------------


def tab_id_from_path(path: Sequence[str]) -> int | None:
    """Tab id for ``tabs/<id>/...`` or ``windows/<w>/<id>/...``, else None."""
    if len(path) >= 2 and path[0] == TABS:
        segment = path[1]
    elif len(path) >= 3 and path[0] == WINDOWS:
        segment = path[2]
    else:
        return None
    return int(segment) if is_number(segment) else None


def dom_start(path: Sequence[str]) -> int:
    """Index of the first DOM segment, or -1 outside a tab."""
    if tab_id_from_path(path) is None:
        return -1
    return 2 if path[0] == TABS else 3


def is_inside_tab(path: Sequence[str]) -> bool:
    return tab_id_from_path(path) is not None


def split_browser_path(path: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split into (browser prefix, DOM segments)."""
    start = dom_start(path)
    if start < 0:
        return list(path), []
    return list(path[:start]), list(path[start:])


def window_id_from_path(path: Sequence[str]) -> int | None:
    if len(path) >= 2 and path[0] == WINDOWS and is_number(path[1]):
        return int(path[1])
    return None


def match_window(windows: Sequence[WindowInfo], target: str) -> WindowInfo:
    if not is_number(target):
        raise NoSuchEntry(f"{target}: Invalid window ID")
    window_id = int(target)
    for window in windows:
        if window.id == window_id:
            return window
    raise NoSuchEntry(f"{target}: Window not found")


def match_tab(
    windows: Sequence[WindowInfo],
    target: str,
    window_id: int | None = None,
) -> TabInfo:
    """Resolve a tab by exact numeric id, else by title/URL substring.

    Substring matching is case-insensitive and returns the first hit in
    window-then-tab order. ``window_id`` restricts the search to one window.
    """
    tabs = [
        tab
        for window in windows
        if window_id is None or window.id == window_id
        for tab in window.tabs
    ]
    if is_number(target):
        tab_id = int(target)
        for tab in tabs:
            if tab.id == tab_id:
                return tab
        raise NoSuchEntry(f"Tab {tab_id} not found. Use 'tabs' to list all tabs.")

    pattern = target.lower()
    for tab in tabs:
        if pattern in tab.title.lower() or pattern in tab.url.lower():
            return tab
    raise NoSuchEntry(f"No tab matching '{target}'. Use 'tabs' to list all tabs.")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchHit:
    """A matching entry and its path relative to where the search started."""

    path: str
    entry: VirtualEntry

    @property
    def full_name(self) -> str:
        return self.path + self.entry.name


def entry_matches(entry: VirtualEntry, pattern: str = "", role: str | None = None) -> bool:
    if role and entry.role.lower() != role.lower():
        return False
    if not pattern:
        return True
    pattern = pattern.lower()
    return (
        pattern in entry.name.lower()
        or pattern in entry.role.lower()
        or (entry.value is not None and pattern in entry.value.lower())
    )


def search(
    start_id: str,
    node_map: NodeMap,
    pattern: str = "",
    *,
    role: str | None = None,
    limit: int = 0,
    recursive: bool = True,
) -> list[SearchHit]:
    """Depth-first search below ``start_id``.

    Non-recursive searches only look at direct children. ``limit`` > 0 stops
    the traversal as soon as that many hits are collected.
    """
    hits: list[SearchHit] = []
    visited = {start_id}
    stack: list[tuple[Iterator[VirtualEntry], str]] = [
        (iter(child_entries(start_id, node_map)), "")
    ]
    while stack:
        if limit and len(hits) >= limit:
            break
        entries, prefix = stack[-1]
        entry = next(entries, None)
        if entry is None:
            stack.pop()
            continue
        if entry_matches(entry, pattern, role):
            hits.append(SearchHit(prefix, entry))
        if recursive and entry.is_container and entry.node_id not in visited:
            visited.add(entry.node_id)
            stack.append((iter(child_entries(entry.node_id, node_map)), f"{prefix}{entry.name}/"))
    return hits


__all__ = [
    "TABS",
    "WINDOWS",
    "SearchHit",
    "split_segments",
    "is_number",
    "not_a_directory",
    "PathWalk",
    "walk_path",
    "resolve_path",
    "tab_id_from_path",
    "dom_start",
    "is_inside_tab",
    "split_browser_path",
    "window_id_from_path",
    "match_window",
    "match_tab",
    "entry_matches",
    "search",
]
