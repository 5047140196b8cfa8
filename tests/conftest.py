# Shared fixtures: an in-memory DomController and a kernel wired to it.
# Created: 2026-03-05

from dataclasses import replace

import pytest

from domshell.browser.protocol import ChangeListener, CookieInfo, FrameInfo, TabInfo, WindowInfo
from domshell.browser.snapshot import AccessibilityNode
from domshell.errors import NoSuchEntry, NotAttached
from domshell.shell.kernel import NavigationKernel
from domshell.shell.session import Session, TabAttachment


def ax(node_id, role, name="", children=(), backend=None, **kwargs):
    return AccessibilityNode(
        node_id=node_id,
        role=role,
        name=name,
        child_ids=list(children),
        backend_id=backend,
        **kwargs,
    )


def example_page():
    """Tab 7: nav (behind an unnamed generic), main, two Submit buttons, a form."""
    return [
        ax("1", "RootWebArea", "Example", ["2", "3", "8", "9", "4", "10"], backend=100),
        ax("2", "generic", "", ["5"]),
        ax("5", "navigation", "Nav", ["6", "7"], backend=105),
        ax("6", "link", "Home", backend=106),
        ax("7", "link", "About", backend=107),
        ax("3", "main", "Content", ["11", "14"], backend=103),
        ax("11", "heading", "Welcome"),
        ax("14", "paragraph", "Intro text", backend=114),
        ax("8", "button", "Submit", backend=108),
        ax("9", "button", "Submit", backend=109),
        ax("4", "form", "Login", ["12", "13"], backend=104),
        ax("12", "textbox", "Email", backend=112),
        ax("13", "checkbox", "Remember me", backend=113),
        ax("10", "StaticText", "Footer"),
    ]


def github_page():
    return [
        ax("1", "RootWebArea", "GitHub", ["2"], backend=200),
        ax("2", "button", "Sign in", backend=202),
    ]


def docs_page():
    return [
        ax("1", "RootWebArea", "Docs", ["2"], backend=300),
        ax("2", "link", "Guide", backend=302),
    ]


class FakeDomController:
    """In-memory browser: windows, tabs, one node list per tab."""

    def __init__(self):
        self.windows = [
            WindowInfo(
                id=1,
                focused=False,
                tabs=[
                    TabInfo(id=7, window_id=1, title="Example", url="https://example.com/", active=True),
                    TabInfo(id=8, window_id=1, title="GitHub", url="https://github.com/login"),
                ],
            ),
            WindowInfo(
                id=2,
                focused=True,
                tabs=[TabInfo(id=9, window_id=2, title="Docs", url="https://docs.example.org/", active=True)],
            ),
        ]
        self.pages = {7: example_page(), 8: github_page(), 9: docs_page()}
        self.texts = {100: "Example page", 103: "Welcome Intro text", 114: "Intro text"}
        self.cookie_jar: list[CookieInfo] = []
        self.attached: int | None = None
        self.listener: ChangeListener | None = None
        self.calls: list[tuple] = []
        self.fail_click = False
        self.next_tab_id = 100

    # -- helpers for tests --

    def tab(self, tab_id):
        for window in self.windows:
            for tab in window.tabs:
                if tab.id == tab_id:
                    return tab
        return None

    def fire(self, event="Page.frameNavigated", tab_id=None):
        if self.listener is not None:
            self.listener(self.attached if tab_id is None else tab_id, event)

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]

    # -- DomController --

    async def list_windows(self):
        return self.windows

    async def get_tab(self, tab_id):
        tab = self.tab(tab_id)
        if tab is None:
            raise NoSuchEntry(f"Tab {tab_id} not found. Use 'tabs' to list all tabs.")
        return tab

    async def focused_tab(self):
        for window in self.windows:
            if window.focused:
                for tab in window.tabs:
                    if tab.active:
                        return tab
        return None

    async def attach(self, tab_id):
        await self.get_tab(tab_id)
        self.calls.append(("attach", tab_id))
        self.attached = tab_id

    async def detach(self):
        self.calls.append(("detach", self.attached))
        self.attached = None

    async def get_nodes(self):
        if self.attached is None:
            raise NotAttached("Not attached to any tab.")
        self.calls.append(("get_nodes", self.attached))
        return [replace(n, child_ids=list(n.child_ids)) for n in self.pages[self.attached]]

    async def click(self, backend_id):
        if self.fail_click:
            raise RuntimeError("element is not clickable")
        self.calls.append(("click", backend_id))

    async def click_at(self, backend_id):
        self.calls.append(("click_at", backend_id))

    async def focus(self, backend_id):
        self.calls.append(("focus", backend_id))

    async def type_text(self, text):
        self.calls.append(("type_text", text))

    async def text_content(self, backend_id):
        return self.texts.get(backend_id, "")

    async def page_url(self):
        return self.tab(self.attached).url

    async def page_title(self):
        return self.tab(self.attached).title

    async def list_frames(self):
        return [FrameInfo(id="main", url=await self.page_url())]

    async def navigate(self, tab_id, url, timeout):
        self.calls.append(("navigate", tab_id, url))
        tab = self.tab(tab_id)
        tab.url = url
        tab.title = "Navigated"
        self.pages[tab_id] = [ax("1", "RootWebArea", "Navigated", ["2"]), ax("2", "link", "Next", backend=2)]

    async def open_tab(self, url, timeout):
        tab_id = self.next_tab_id
        self.next_tab_id += 1
        tab = TabInfo(id=tab_id, window_id=1, title="New page", url=url, active=True)
        self.windows[0].tabs.append(tab)
        self.pages[tab_id] = [ax("1", "RootWebArea", "New page", ["2"]), ax("2", "button", "Go", backend=2)]
        self.calls.append(("open_tab", url))
        return tab

    async def cookies(self, url):
        return list(self.cookie_jar)

    def set_change_listener(self, listener):
        self.listener = listener


@pytest.fixture
def controller():
    return FakeDomController()


@pytest.fixture
def attachment(controller):
    return TabAttachment(controller)


@pytest.fixture
def kernel(attachment):
    return NavigationKernel(attachment, navigation_timeout=1.0)


@pytest.fixture
def session():
    return Session(id="s1")
