# Playwright + DevTools implementation of the DomController protocol.
# Created: 2026-03-05
# Changes:
#   - 2026-03-08: Real window ids via Browser.getWindowForTarget.
#   - 2026-03-11: Iframe trees are linked under their owning Iframe node.
#
# Launches Chromium, or connects over CDP to a Chrome the user is already
# running. Tabs get small integer ids the first time they are seen; those ids
# stay stable for the life of the controller.

from __future__ import annotations

import functools
import logging
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    CDPSession,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from domshell.browser.protocol import (
    STALENESS_EVENTS,
    ChangeListener,
    CookieInfo,
    FrameInfo,
    TabInfo,
    WindowInfo,
)
from domshell.browser.snapshot import IFRAME_ROLES, ROOT_ROLES, AccessibilityNode
from domshell.errors import NoSuchEntry, NotAttached

logger = logging.getLogger(__name__)

_CDP_DOMAINS = ("Accessibility", "DOM", "Page", "Runtime")

_JS_CLICK = "function() { this.click(); }"
_JS_CENTER = """function() {
  const r = this.getBoundingClientRect();
  return { x: r.x + r.width / 2, y: r.y + r.height / 2 };
}"""
_JS_TEXT = "function() { return this.textContent || this.value || ''; }"


def _child_frames(tree: dict[str, Any]) -> list[FrameInfo]:
    frames: list[FrameInfo] = []
    for child in tree.get("childFrames", []):
        frame = child.get("frame", {})
        frames.append(FrameInfo(id=frame.get("id", ""), url=frame.get("url", ""), name=frame.get("name", "")))
        frames.extend(_child_frames(child))
    return frames


class PlaywrightController:
    """DomController backed by a Playwright-driven Chromium."""

    def __init__(self, cdp_url: str | None = None, headless: bool = True) -> None:
        self._cdp_url = cdp_url
        self._headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._browser_cdp: CDPSession | None = None

        self._pages: dict[int, Page] = {}
        self._page_ids: dict[Page, int] = {}
        self._target_ids: dict[Page, str] = {}
        self._next_id = 1

        self._tab_id: int | None = None
        self._session: CDPSession | None = None
        self._listener: ChangeListener | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        if self._cdp_url:
            logger.info("Connecting to Chrome over CDP at %s", self._cdp_url)
            self._browser = await self._playwright.chromium.connect_over_cdp(self._cdp_url)
        else:
            logger.info("Launching Chromium (headless=%s)", self._headless)
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            context = await self._browser.new_context()
            await context.new_page()
        self._browser_cdp = await self._browser.new_browser_cdp_session()

    async def stop(self) -> None:
        await self.detach()
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> PlaywrightController:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    # -- tab registry --------------------------------------------------------

    def _live_pages(self) -> list[Page]:
        if self._browser is None:
            raise NotAttached("Browser is not running")
        pages: list[Page] = []
        for context in self._browser.contexts:
            pages.extend(p for p in context.pages if not p.is_closed())

        for page in pages:
            if page not in self._page_ids:
                self._page_ids[page] = self._next_id
                self._pages[self._next_id] = page
                self._next_id += 1
        for page in [p for p in self._page_ids if p.is_closed()]:
            self._pages.pop(self._page_ids.pop(page), None)
            self._target_ids.pop(page, None)
        return pages

    def _page(self, tab_id: int) -> Page:
        self._live_pages()
        page = self._pages.get(tab_id)
        if page is None:
            raise NoSuchEntry(f"Tab {tab_id} not found. Use 'tabs' to list all tabs.")
        return page

    async def _window_id(self, page: Page) -> int:
        try:
            target_id = self._target_ids.get(page)
            if target_id is None:
                probe = await page.context.new_cdp_session(page)
                info = await probe.send("Target.getTargetInfo")
                await probe.detach()
                target_id = info["targetInfo"]["targetId"]
                self._target_ids[page] = target_id
            assert self._browser_cdp is not None
            window = await self._browser_cdp.send("Browser.getWindowForTarget", {"targetId": target_id})
            return int(window["windowId"])
        except PlaywrightError as e:
            logger.debug("Window lookup failed, falling back to context index: %s", e)
            assert self._browser is not None
            return self._browser.contexts.index(page.context) + 1

    async def _evaluate(self, page: Page, expression: str, default: Any) -> Any:
        try:
            return await page.evaluate(expression)
        except PlaywrightError as e:
            logger.debug("evaluate(%s) failed on %s: %s", expression, page.url, e)
            return default

    async def _tab_info(self, page: Page) -> TabInfo:
        return TabInfo(
            id=self._page_ids[page],
            window_id=await self._window_id(page),
            title=await page.title(),
            url=page.url,
            active=await self._evaluate(page, "document.visibilityState", "") == "visible",
        )

    async def list_windows(self) -> list[WindowInfo]:
        windows: dict[int, WindowInfo] = {}
        for page in self._live_pages():
            tab = await self._tab_info(page)
            window = windows.setdefault(tab.window_id, WindowInfo(id=tab.window_id))
            window.tabs.append(tab)
            if await self._evaluate(page, "document.hasFocus()", False):
                window.focused = True
        return list(windows.values())

    async def get_tab(self, tab_id: int) -> TabInfo:
        return await self._tab_info(self._page(tab_id))

    async def focused_tab(self) -> TabInfo | None:
        pages = self._live_pages()
        if not pages:
            return None
        for page in pages:
            if await self._evaluate(page, "document.hasFocus()", False):
                return await self._tab_info(page)
        for page in pages:
            if await self._evaluate(page, "document.visibilityState", "") == "visible":
                return await self._tab_info(page)
        return await self._tab_info(pages[-1])

    # -- attachment ----------------------------------------------------------

    def set_change_listener(self, listener: ChangeListener | None) -> None:
        self._listener = listener

    def _emit(self, tab_id: int, event: str, _params: Any = None) -> None:
        if self._listener is not None and tab_id == self._tab_id:
            self._listener(tab_id, event)

    async def attach(self, tab_id: int) -> None:
        if self._tab_id == tab_id and self._session is not None:
            return
        page = self._page(tab_id)
        await self.detach()

        session = await page.context.new_cdp_session(page)
        for domain in _CDP_DOMAINS:
            await session.send(f"{domain}.enable")
        for event in STALENESS_EVENTS:
            session.on(event, functools.partial(self._emit, tab_id, event))

        self._session = session
        self._tab_id = tab_id
        logger.debug("Attached to tab %d (%s)", tab_id, page.url)

    async def detach(self) -> None:
        session, self._session = self._session, None
        tab_id, self._tab_id = self._tab_id, None
        if session is None:
            return
        try:
            await session.detach()
        except PlaywrightError as e:
            # Closed pages take their session with them.
            logger.debug("Detach from tab %s: %s", tab_id, e)

    async def _send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if self._session is None:
            raise NotAttached("Not attached to any tab. Use 'cd tabs/<id>' first.")
        return await self._session.send(method, params or {})

    def _attached_page(self) -> Page:
        if self._tab_id is None:
            raise NotAttached("Not attached to any tab. Use 'cd tabs/<id>' first.")
        return self._page(self._tab_id)

    # -- accessibility tree --------------------------------------------------

    async def list_frames(self) -> list[FrameInfo]:
        result = await self._send("Page.getFrameTree")
        return _child_frames(result.get("frameTree", {}))

    async def _frame_owner(self, frame_id: str) -> int | None:
        try:
            owner = await self._send("DOM.getFrameOwner", {"frameId": frame_id})
        except PlaywrightError as e:
            logger.debug("No owner for frame %s: %s", frame_id, e)
            return None
        return owner.get("backendNodeId")

    async def get_nodes(self) -> list[AccessibilityNode]:
        result = await self._send("Accessibility.getFullAXTree")
        nodes = [AccessibilityNode.from_cdp(raw) for raw in result.get("nodes", [])]
        owners = {
            node.backend_id: node
            for node in nodes
            if node.role in IFRAME_ROLES and node.backend_id is not None
        }

        for frame in await self.list_frames():
            prefix = f"frame_{frame.id}_"
            try:
                frame_result = await self._send("Accessibility.getFullAXTree", {"frameId": frame.id})
            except PlaywrightError as e:
                # Out-of-process iframes are not reachable from this session.
                logger.debug("Skipping frame %s (%s): %s", frame.id, frame.url, e)
                continue
            frame_nodes = [AccessibilityNode.from_cdp(raw, prefix) for raw in frame_result.get("nodes", [])]
            if not frame_nodes:
                continue
            nodes.extend(frame_nodes)

            frame_root = next((n for n in frame_nodes if n.role in ROOT_ROLES), frame_nodes[0])
            owner = owners.get(await self._frame_owner(frame.id))
            if owner is not None and frame_root.node_id not in owner.child_ids:
                owner.child_ids.append(frame_root.node_id)
        return nodes

    # -- element actions -----------------------------------------------------

    async def _object_id(self, backend_id: int) -> str:
        result = await self._send("DOM.resolveNode", {"backendNodeId": backend_id})
        return result["object"]["objectId"]

    async def _call_on(self, backend_id: int, function: str) -> Any:
        result = await self._send(
            "Runtime.callFunctionOn",
            {
                "objectId": await self._object_id(backend_id),
                "functionDeclaration": function,
                "returnByValue": True,
            },
        )
        if "exceptionDetails" in result:
            raise PlaywrightError(result["exceptionDetails"].get("text", "script error"))
        return result.get("result", {}).get("value")

    async def click(self, backend_id: int) -> None:
        await self._call_on(backend_id, _JS_CLICK)

    async def click_at(self, backend_id: int) -> None:
        await self._send("DOM.scrollIntoViewIfNeeded", {"backendNodeId": backend_id})
        center = await self._call_on(backend_id, _JS_CENTER)
        await self._attached_page().mouse.click(center["x"], center["y"])

    async def focus(self, backend_id: int) -> None:
        await self._send("DOM.focus", {"backendNodeId": backend_id})

    async def type_text(self, text: str) -> None:
        await self._attached_page().keyboard.type(text)

    async def text_content(self, backend_id: int) -> str:
        return str(await self._call_on(backend_id, _JS_TEXT) or "")

    async def page_url(self) -> str:
        return self._attached_page().url

    async def page_title(self) -> str:
        return await self._attached_page().title()

    # -- navigation ----------------------------------------------------------

    async def _goto(self, page: Page, url: str, timeout: float) -> None:
        try:
            await page.goto(url, wait_until="load", timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            logger.warning("%s still loading after %.0fs, continuing", url, timeout)

    async def navigate(self, tab_id: int, url: str, timeout: float) -> None:
        await self._goto(self._page(tab_id), url, timeout)

    def _default_context(self) -> BrowserContext | None:
        if self._tab_id is not None and self._tab_id in self._pages:
            return self._pages[self._tab_id].context
        assert self._browser is not None
        return self._browser.contexts[0] if self._browser.contexts else None

    async def open_tab(self, url: str, timeout: float) -> TabInfo:
        context = self._default_context()
        if context is None:
            assert self._browser is not None
            context = await self._browser.new_context()
        page = await context.new_page()
        await page.bring_to_front()
        await self._goto(page, url, timeout)
        self._live_pages()
        return await self._tab_info(page)

    async def cookies(self, url: str) -> list[CookieInfo]:
        context = self._default_context()
        if context is None:
            return []
        return [
            CookieInfo(
                name=c.get("name", ""),
                value=c.get("value", ""),
                domain=c.get("domain", ""),
                expires=c["expires"] if c.get("expires", -1) > 0 else None,
            )
            for c in await context.cookies(url)
        ]


__all__ = ["PlaywrightController"]
