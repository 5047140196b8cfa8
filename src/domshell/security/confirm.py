"""
Write-command confirmation on the server's controlling terminal.
Created: 2026-03-07
Changes:
  - 2026-03-12: Unbuffered fd I/O on the terminal; the reader stops and
    closes the terminal on timeout so the next prompt gets the next answer.

The prompt is read from /dev/tty, not stdin: the MCP server may be started
by a supervisor whose stdin is not a person. No terminal, a timeout or any
answer other than y/yes counts as "no".
"""

from __future__ import annotations

import asyncio
import logging
import os
import select
import threading
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Confirmer = Callable[[str], Awaitable[bool]]

POLL_INTERVAL = 0.05


class TerminalConfirmer:
    """Asks the local operator to approve a command, one prompt at a time."""

    def __init__(self, timeout: float = 60.0, tty_path: str = "/dev/tty"):
        self.timeout = timeout
        self.tty_path = tty_path
        self._lock = asyncio.Lock()

    def _ask(self, prompt: str, stop: threading.Event) -> str:
        """Write the prompt and read one line, giving up once ``stop`` is set."""
        fd = os.open(self.tty_path, os.O_RDWR | os.O_NOCTTY)
        try:
            os.write(fd, prompt.encode("utf-8"))
            data = b""
            while b"\n" not in data and not stop.is_set():
                ready, _, _ = select.select([fd], [], [], POLL_INTERVAL)
                if not ready:
                    continue
                chunk = os.read(fd, 1024)
                if not chunk:
                    break
                data += chunk
        finally:
            os.close(fd)
        return data.decode("utf-8", errors="replace").split("\n", 1)[0]

    def _read_answer(self, prompt: str, stop: threading.Event) -> str:
        try:
            return self._ask(prompt, stop)
        except OSError as e:
            logger.warning("No terminal available for confirmation (%s), denying", e)
            return ""

    async def __call__(self, description: str) -> bool:
        prompt = f"\n[DOMShell] An MCP client wants to: {description}\nAllow? (y/n): "
        stop = threading.Event()
        async with self._lock:
            reader = asyncio.ensure_future(asyncio.to_thread(self._read_answer, prompt, stop))
            try:
                answer = await asyncio.wait_for(asyncio.shield(reader), timeout=self.timeout)
            except TimeoutError:
                logger.warning("Confirmation timed out after %.0fs, denying", self.timeout)
                return False
            finally:
                stop.set()
                # The terminal is released before the next prompt may open it.
                await asyncio.wait([reader])
        return answer.strip().lower() in ("y", "yes")


__all__ = ["Confirmer", "TerminalConfirmer"]
