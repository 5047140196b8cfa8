# BridgeHub — the gateway end of the single shared bridge connection.
# Created: 2026-03-07
# Changes:
#   - 2026-03-08: Newer connections replace older ones; pending commands of the
#     old connection fail with NotAttached.
#
# Every request gets a random correlation id and a future in the outstanding
# table. The entry is removed when the result arrives or the wait times out;
# a RESULT for an id that is no longer outstanding is dropped.

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Protocol

from domshell.errors import CommandTimeout, NotAttached
from domshell.security.audit import AuditEvent, AuditLogger

logger = logging.getLogger(__name__)

NOT_CONNECTED = (
    "Bridge not connected. Start 'domshell bridge' next to the browser "
    "and make sure it can reach this server."
)


class BridgeConnection(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass
class PendingRemoteCommand:
    id: str
    submitted_at: float
    deadline: float
    future: asyncio.Future[Any]


class BridgeHub:
    """Correlates requests sent over the bridge with the results coming back."""

    def __init__(self, audit: AuditLogger | None = None, timeout: float = 30.0):
        self.audit = audit
        self.timeout = timeout
        self._conn: BridgeConnection | None = None
        self._pending: dict[str, PendingRemoteCommand] = {}

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _audit(self, event: AuditEvent, detail: str = "") -> None:
        if self.audit is not None:
            self.audit.record(event, detail=detail)

    def _fail_pending(self, reason: str) -> None:
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(NotAttached(reason))
        self._pending.clear()

    async def attach(self, conn: BridgeConnection) -> None:
        """Make ``conn`` the shared connection, replacing any older one."""
        old, self._conn = self._conn, conn
        if old is not None:
            logger.info("New bridge connection replaces the existing one")
            self._fail_pending("Bridge connection was replaced")
            try:
                await old.close(1000)
            except Exception as e:
                logger.debug("Closing replaced bridge connection failed: %s", e)
        logger.info("Bridge connected")
        self._audit(AuditEvent.CONNECTED)

    def detach(self, conn: BridgeConnection) -> None:
        if conn is not self._conn:
            return
        self._conn = None
        logger.info("Bridge disconnected")
        self._audit(AuditEvent.DISCONNECTED)
        self._fail_pending("Bridge disconnected")

    async def request(self, frame: dict[str, Any], timeout: float | None = None) -> Any:
        """Send ``frame`` with a fresh correlation id and wait for its result."""
        if self._conn is None:
            raise NotAttached(NOT_CONNECTED)
        timeout = self.timeout if timeout is None else timeout

        command_id = secrets.token_hex(8)
        now = time.monotonic()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[command_id] = PendingRemoteCommand(
            id=command_id, submitted_at=now, deadline=now + timeout, future=future
        )
        try:
            await self._conn.send_text(json.dumps({**frame, "id": command_id}))
            return await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError:
            raise CommandTimeout(f"Command timed out after {timeout:g} seconds") from None
        finally:
            self._pending.pop(command_id, None)

    async def execute(self, session: str, command: str, timeout: float | None = None) -> str:
        result = await self.request(
            {"type": "EXECUTE", "session": session, "command": command}, timeout
        )
        return "" if result is None else str(result)

    async def query_url(self, session: str, timeout: float | None = None) -> str | None:
        """URL of the tab ``session`` is in, or None outside a tab."""
        result = await self.request({"type": "URL", "session": session}, timeout)
        return result or None

    async def close_session(self, session: str) -> None:
        if self._conn is None:
            return
        try:
            await self._conn.send_text(json.dumps({"type": "CLOSE_SESSION", "session": session}))
        except Exception as e:
            logger.debug("CLOSE_SESSION for %s not delivered: %s", session, e)

    def handle_frame(self, raw: str) -> None:
        """Process one text frame from the kernel host."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping malformed bridge frame: %.80s", raw)
            return
        if not isinstance(frame, dict):
            logger.warning("Dropping malformed bridge frame: %.80s", raw)
            return

        kind = frame.get("type")
        if kind == "pong":
            return
        if kind != "RESULT" or not isinstance(frame.get("id"), str):
            logger.warning("Dropping unexpected bridge frame: %.80s", raw)
            return

        pending = self._pending.get(frame["id"])
        if pending is None:
            logger.debug("Dropping late result for %s", frame["id"])
            return
        if not pending.future.done():
            pending.future.set_result(frame.get("result"))


__all__ = ["BridgeHub", "BridgeConnection", "PendingRemoteCommand", "NOT_CONNECTED"]
