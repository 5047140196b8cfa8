"""
Plain-text renderers for kernel command results.
Created: 2026-03-05

Everything here is pure: inputs in, a string out. No colour codes; the
results travel over the bridge and into MCP tool replies.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from domshell.browser.protocol import CookieInfo, TabInfo, WindowInfo
from domshell.browser.resolver import SearchHit
from domshell.browser.snapshot import NodeMap, VirtualEntry, child_entries

CAT_TEXT_LIMIT = 500

SESSION_COOKIE_HINTS = ("session", "sid", "auth", "token", "jwt", "user")


# ---------------------------------------------------------------------------
# Browser level
# ---------------------------------------------------------------------------


def browser_root(windows: Sequence[WindowInfo], current: TabInfo | None = None) -> str:
    total_tabs = sum(len(w.tabs) for w in windows)
    lines = [
        f"  windows/       ({len(windows)} windows)",
        f"  tabs/          ({total_tabs} tabs)",
    ]
    if current is not None:
        lines.append("")
        lines.append(f"  Active tab: {current.id} - {current.title or 'unknown'} ({current.url})")
    return "\n".join(lines)


def tabs_table(windows: Sequence[WindowInfo], current_tab_id: int | None = None) -> str:
    lines = ["  ID     TITLE                                URL                                    WIN"]
    for window in windows:
        for tab in window.tabs:
            active = "*" if tab.active else " "
            current = " *current" if tab.id == current_tab_id else ""
            title = (tab.title or "untitled")[:36]
            lines.append(
                f"{active} {tab.id:<6} {title:<36} {tab.url[:38]:<38} {window.id}{current}"
            )
    lines.append("")
    lines.append("Use 'cd <id>' or 'cd <url-pattern>' to enter a tab.")
    return "\n".join(lines)


def _short_url(url: str) -> str:
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            return url[len(scheme):][:30]
    return url[:30]


def windows_tree(windows: Sequence[WindowInfo], current_tab_id: int | None = None) -> str:
    lines: list[str] = []
    for index, window in enumerate(windows):
        focused = " (focused)" if window.focused else ""
        lines.append(f"Window {window.id}{focused}")
        for position, tab in enumerate(window.tabs):
            connector = "└── " if position == len(window.tabs) - 1 else "├── "
            active = "*" if tab.active else " "
            current = " *current" if tab.id == current_tab_id else ""
            title = (tab.title or "untitled")[:32]
            lines.append(f"{connector}{active}{tab.id:<6} {title:<32} {_short_url(tab.url)}{current}")
        if index < len(windows) - 1:
            lines.append("")
    lines.append("")
    lines.append("Use 'cd windows/<id>/<tab-id>' to enter a tab, or 'here' to jump to the active tab.")
    return "\n".join(lines)


def window_tabs(window: WindowInfo, current_tab_id: int | None = None) -> str:
    lines = ["  ID     TITLE                                URL"]
    for tab in window.tabs:
        current = " *current" if tab.id == current_tab_id else ""
        title = (tab.title or "untitled")[:36]
        lines.append(f"  {tab.id:<6} {title:<36} {tab.url[:38]}{current}")
    lines.append("")
    lines.append("Use 'cd <id>' or 'cd <url-pattern>' to enter a tab.")
    return "\n".join(lines)


def entered_tab(tab: TabInfo, node_count: int, frame_count: int) -> str:
    lines = [
        f"Entered tab {tab.id}",
        f"  Title: {tab.title}",
        f"  URL:   {tab.url}",
        f"  AX Nodes: {node_count}",
    ]
    if frame_count:
        lines.append(f"  Iframes: {frame_count}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# DOM level
# ---------------------------------------------------------------------------


def count_summary(entries: Sequence[VirtualEntry]) -> str:
    dirs = sum(1 for e in entries if e.is_container)
    interactive = sum(1 for e in entries if not e.is_container and e.is_interactive)
    static = len(entries) - dirs - interactive
    return f"{len(entries)} total ({dirs} [d], {interactive} [x], {static} [-])"


def entry_listing(
    entries: Sequence[VirtualEntry],
    *,
    long: bool = False,
    offset: int = 0,
    limit: int = 0,
) -> str:
    """``ls`` body with optional long format and pagination."""
    if not entries:
        return "(empty directory)"

    total = len(entries)
    page = list(entries[offset:])
    if limit:
        page = page[:limit]

    if long:
        lines = [f"{e.type_prefix} {e.role:<14} {e.display_name}" for e in page]
    else:
        lines = [e.display_name for e in page]

    shown = f"{offset + 1}-{offset + len(page)} of {total}"
    if limit and offset + limit < total:
        lines.append(f"... {shown} (--offset {offset + limit} for next page)")
    elif offset > 0:
        lines.append(f"... {shown}")
    return "\n".join(lines)


def cat_entry(entry: VirtualEntry, child_count: int | None, text: str = "") -> str:
    lines = [
        f"--- {entry.name} ---",
        f"  Role:  {entry.role}",
        f"  Type:  {entry.type_prefix} {entry.kind}",
        f"  AXID:  {entry.node_id}",
    ]
    if entry.backend_id:
        lines.append(f"  DOM:   backend#{entry.backend_id}")
    if entry.value:
        lines.append(f"  Value: {entry.value}")
    if child_count is not None:
        lines.append(f"  Children: {child_count}")
    text = text.strip()
    if text:
        lines.append("  Text:")
        lines.append(f"  {text[:CAT_TEXT_LIMIT]}")
        if len(text) > CAT_TEXT_LIMIT:
            lines.append(f"  ... ({len(text)} chars total)")
    return "\n".join(lines)


def text_block(target: str, text: str, limit: int = 0) -> str:
    text = text.strip()
    if not text:
        return f"(no text content in {target})"
    lines = [f"--- Text: {target} ---"]
    if limit and len(text) > limit:
        lines.append(text[:limit])
        lines.append(f"... ({len(text)} chars total, showing first {limit})")
    else:
        lines.append(text)
        lines.append(f"({len(text)} chars)")
    return "\n".join(lines)


def tree_view(root_name: str, node_id: str, node_map: NodeMap, depth: int) -> str:
    lines = [f"{root_name}/"]

    def walk(parent_id: str, prefix: str, level: int, seen: frozenset[str]) -> None:
        if level >= depth:
            return
        entries = child_entries(parent_id, node_map)
        for index, entry in enumerate(entries):
            last = index == len(entries) - 1
            lines.append(f"{prefix}{'└── ' if last else '├── '}{entry.type_prefix} {entry.display_name}")
            if entry.is_container and entry.node_id not in seen:
                walk(
                    entry.node_id,
                    prefix + ("    " if last else "│   "),
                    level + 1,
                    seen | {entry.node_id},
                )

    walk(node_id, "", 0, frozenset({node_id}))
    return "\n".join(lines)


def search_results(hits: Sequence[SearchHit], pattern: str) -> str:
    if not hits:
        return f"No matches for '{pattern}'"
    return "\n".join(
        f"{hit.entry.type_prefix} {hit.full_name}{'/' if hit.entry.is_container else ''} ({hit.entry.role})"
        for hit in hits
    )


# ---------------------------------------------------------------------------
# Cookies and environment
# ---------------------------------------------------------------------------


def is_session_cookie(cookie: CookieInfo) -> bool:
    name = cookie.name.lower()
    return any(hint in name for hint in SESSION_COOKIE_HINTS)


def whoami(url: str, cookies: Sequence[CookieInfo]) -> str:
    """Authentication summary for the current page.

    Session-looking cookies are listed as ``Cookie: name=value`` lines so the
    gateway's cookie redaction sees every value it has to mask.
    """
    session_cookies = [c for c in cookies if is_session_cookie(c)]
    lines = [f"URL: {url}"]
    if session_cookies:
        primary = session_cookies[0]
        lines.append("Status: Authenticated")
        lines.append(f"Via: {primary.name}")
        if primary.expires:
            expires = datetime.fromtimestamp(primary.expires, tz=UTC).isoformat()
            lines.append(f"Expires: {expires}")
        lines.extend(f"Cookie: {c.name}={c.value}" for c in session_cookies)
    else:
        lines.append("Status: Guest (no session cookie detected)")
    lines.append(f"Total cookies: {len(cookies)}")
    return "\n".join(lines)


def env_listing(env: dict[str, str]) -> str:
    return "\n".join(f"{key}={value}" for key, value in env.items())


__all__ = [
    "browser_root",
    "tabs_table",
    "windows_tree",
    "window_tabs",
    "entered_tab",
    "count_summary",
    "entry_listing",
    "cat_entry",
    "text_block",
    "tree_view",
    "search_results",
    "is_session_cookie",
    "whoami",
    "env_listing",
]
