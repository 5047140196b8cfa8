# Kernel host and bridge client — the browser side of DOMShell.
# Created: 2026-03-08
# Changes:
#   - 2026-03-09: Exponential reconnect backoff; stop on 4001 (bad token).
#   - 2026-03-11: URL frames answer with the session's tab URL for the
#     gateway's domain allowlist.
#
# The kernel host owns the DomController, the one TabAttachment and a Session
# per remote caller. The bridge client dials the gateway's /bridge websocket
# and turns EXECUTE/URL/CLOSE_SESSION frames into kernel host calls.

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from domshell.browser.protocol import DomController
from domshell.errors import NoSuchEntry, Unauthorized
from domshell.shell.kernel import NavigationKernel
from domshell.shell.session import Session, TabAttachment

logger = logging.getLogger(__name__)

BRIDGE_UNAUTHORIZED = 4001


class KernelHost:
    """Sessions and the navigation kernel next to the browser."""

    def __init__(self, controller: DomController, navigation_timeout: float = 15.0):
        self.controller = controller
        self.attachment = TabAttachment(controller)
        self.kernel = NavigationKernel(self.attachment, navigation_timeout=navigation_timeout)
        self.sessions: dict[str, Session] = {}

    def session(self, session_id: str) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            logger.info("New shell session %s", session_id)
            session = self.sessions[session_id] = Session(id=session_id)
        return session

    async def execute(self, session_id: str, command: str) -> str:
        async with self.attachment.lock:
            return await self.kernel.execute(self.session(session_id), command)

    async def current_url(self, session_id: str) -> str | None:
        """URL of the tab the session is in; None when it is not in a tab."""
        session = self.sessions.get(session_id)
        if session is None or session.tab_id is None:
            return None
        try:
            tab = await self.controller.get_tab(session.tab_id)
        except NoSuchEntry:
            return None
        return tab.url or None

    def close_session(self, session_id: str) -> None:
        if self.sessions.pop(session_id, None) is not None:
            logger.info("Closed shell session %s", session_id)


class BridgeClient:
    """Keeps one websocket to the gateway open and serves its frames."""

    def __init__(
        self,
        host: KernelHost,
        url: str,
        token: str,
        *,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
    ):
        self.host = host
        self.url = url
        self.token = token
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._tasks: set[asyncio.Task] = set()

    @property
    def endpoint(self) -> str:
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}token={quote(self.token, safe='')}"

    def next_delay(self, delay: float) -> float:
        return min(delay * 2, self.max_delay)

    async def run(self) -> None:
        """Connect and serve forever, reconnecting with exponential backoff.

        Raises Unauthorized when the gateway rejects the token; retrying
        with the same token cannot succeed.
        """
        delay = self.initial_delay
        while True:
            try:
                async with websockets.connect(self.endpoint) as ws:
                    logger.info("Connected to gateway at %s", self.url)
                    delay = self.initial_delay
                    await self.serve(ws)
                    code = ws.close_code
            except ConnectionClosed as e:
                code = e.rcvd.code if e.rcvd else None
                logger.warning("Bridge connection lost: %s", e)
            except (OSError, InvalidHandshake) as e:
                code = None
                logger.warning("Cannot reach gateway at %s: %s", self.url, e)

            if code == BRIDGE_UNAUTHORIZED:
                raise Unauthorized("Gateway rejected the bridge token (close code 4001)")

            logger.info("Reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)
            delay = self.next_delay(delay)

    async def serve(self, ws: Any) -> None:
        async for raw in ws:
            await self.handle_frame(ws, raw)

    async def handle_frame(self, ws: Any, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping malformed frame from gateway: %.80s", raw)
            return
        if not isinstance(frame, dict):
            logger.warning("Dropping malformed frame from gateway: %.80s", raw)
            return

        kind = frame.get("type")
        session_id = str(frame.get("session") or "default")

        if kind == "ping":
            await ws.send(json.dumps({"type": "pong"}))
        elif kind == "EXECUTE":
            command_id, command = frame.get("id"), frame.get("command")
            if not isinstance(command_id, str) or not isinstance(command, str):
                logger.warning("Dropping EXECUTE frame without id/command: %.80s", raw)
                return
            task = asyncio.create_task(self._execute(ws, command_id, session_id, command))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif kind == "URL":
            command_id = frame.get("id")
            if not isinstance(command_id, str):
                logger.warning("Dropping URL frame without id: %.80s", raw)
                return
            url = await self.host.current_url(session_id)
            await self._reply(ws, command_id, url)
        elif kind == "CLOSE_SESSION":
            self.host.close_session(session_id)
        else:
            logger.warning("Dropping unknown frame type %r", kind)

    async def _execute(self, ws: Any, command_id: str, session_id: str, command: str) -> None:
        logger.debug("[%s] %s", session_id, command)
        result = await self.host.execute(session_id, command)
        await self._reply(ws, command_id, result)

    async def _reply(self, ws: Any, command_id: str, result: str | None) -> None:
        try:
            await ws.send(json.dumps({"type": "RESULT", "id": command_id, "result": result}))
        except ConnectionClosed:
            logger.debug("Result %s not delivered: connection closed", command_id)


async def run_bridge(
    url: str,
    token: str,
    *,
    cdp_url: str | None = None,
    headless: bool = False,
    navigation_timeout: float = 15.0,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
) -> None:
    """Start the browser controller and serve the gateway until cancelled."""
    from domshell.browser.driver import PlaywrightController

    async with PlaywrightController(cdp_url=cdp_url, headless=headless) as controller:
        host = KernelHost(controller, navigation_timeout=navigation_timeout)
        client = BridgeClient(
            host, url, token, initial_delay=initial_delay, max_delay=max_delay
        )
        await client.run()


__all__ = ["KernelHost", "BridgeClient", "run_bridge"]
