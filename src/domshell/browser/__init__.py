# Browser side of DOMShell: accessibility snapshots, path resolution and the
# Playwright/CDP controller.
"""Browser access and the accessibility-tree filesystem."""

from .snapshot import AccessibilityNode, NodeMap, VirtualEntry, child_entries
from .protocol import CookieInfo, DomController, FrameInfo, TabInfo, WindowInfo
from .resolver import SearchHit, match_tab, resolve_path, search
from .driver import PlaywrightController

__all__ = [
    # Snapshot
    "AccessibilityNode",
    "NodeMap",
    "VirtualEntry",
    "child_entries",
    # Controller interface
    "DomController",
    "TabInfo",
    "WindowInfo",
    "CookieInfo",
    "FrameInfo",
    # Resolver
    "SearchHit",
    "match_tab",
    "resolve_path",
    "search",
    # Driver
    "PlaywrightController",
]
