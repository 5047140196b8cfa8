"""DomController Protocol — the browser-control interface the kernel drives.

The shipped implementation is :class:`domshell.browser.driver.PlaywrightController`;
tests use an in-memory fake. One controller holds at most one tab attachment
at a time: attaching a tab implicitly detaches the previous one.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from domshell.browser.snapshot import AccessibilityNode

# (tab_id, DevTools event name) for events that invalidate the snapshot
ChangeListener = Callable[[int, str], None]

STALENESS_EVENTS = frozenset({
    "Page.frameNavigated",
    "Page.loadEventFired",
    "DOM.documentUpdated",
})


@dataclass
class TabInfo:
    """A browser tab as seen from the shell."""

    id: int
    window_id: int
    title: str = ""
    url: str = ""
    active: bool = False  # visible tab of its window


@dataclass
class WindowInfo:
    id: int
    focused: bool = False
    tabs: list[TabInfo] = field(default_factory=list)


@dataclass
class CookieInfo:
    name: str
    value: str
    domain: str = ""
    expires: float | None = None  # epoch seconds, None for session cookies


@dataclass
class FrameInfo:
    id: str
    url: str = ""
    name: str = ""


@runtime_checkable
class DomController(Protocol):
    """Browser-control collaborator used by the navigation kernel."""

    async def list_windows(self) -> list[WindowInfo]: ...

    async def get_tab(self, tab_id: int) -> TabInfo: ...

    async def focused_tab(self) -> TabInfo | None: ...

    async def attach(self, tab_id: int) -> None: ...

    async def detach(self) -> None: ...

    async def get_nodes(self) -> list[AccessibilityNode]:
        """Full node set of the attached tab, iframe trees merged in."""
        ...

    async def click(self, backend_id: int) -> None: ...

    async def click_at(self, backend_id: int) -> None:
        """Mouse click at the centre of the element's bounding box."""
        ...

    async def focus(self, backend_id: int) -> None: ...

    async def type_text(self, text: str) -> None: ...

    async def text_content(self, backend_id: int) -> str: ...

    async def page_url(self) -> str: ...

    async def page_title(self) -> str: ...

    async def list_frames(self) -> list[FrameInfo]: ...

    async def navigate(self, tab_id: int, url: str, timeout: float) -> None:
        """Load ``url`` in the tab and wait for it (at most ``timeout`` seconds)."""
        ...

    async def open_tab(self, url: str, timeout: float) -> TabInfo: ...

    async def cookies(self, url: str) -> list[CookieInfo]: ...

    def set_change_listener(self, listener: ChangeListener | None) -> None: ...
