# AuditLogger — append-only record of every remote command decision.
# Created: 2026-03-06
# Persists to ~/.domshell/audit.jsonl (one JSON object per line) unless
# --log-file points elsewhere.

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from domshell.security.tiers import SecurityTier

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 80


class AuditEvent(str, Enum):
    DENIED = "DENIED"
    DENIED_USER = "DENIED_USER"
    DENIED_DOMAIN = "DENIED_DOMAIN"
    EXECUTE = "EXECUTE"
    RESULT = "RESULT"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    REJECTED = "REJECTED"


def summarize(text: str, length: int = SUMMARY_LENGTH) -> str:
    """First ``length`` characters on one line, with ``...`` when cut."""
    flat = " ".join(text.split())
    if len(flat) > length:
        return flat[:length] + "..."
    return flat


class AuditLogger:
    """Append-only JSONL audit trail.

    Write failures are logged and never break command handling.
    """

    def __init__(self, path: Path | None = None):
        if path is None:
            from domshell.config import get_config_dir

            path = get_config_dir() / "audit.jsonl"
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def record(
        self,
        event: AuditEvent,
        command: str = "",
        tier: SecurityTier | None = None,
        session: str | None = None,
        detail: str = "",
    ) -> dict:
        """Append one entry and return it."""
        entry = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "event": event.value,
            "tier": tier.value if tier else None,
            "session": session,
            "command": command,
            "summary": summarize(detail),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning("AuditLogger.record failed: %s", e)
        return entry

    def get_recent(self, limit: int = 20, event: AuditEvent | None = None) -> list[dict]:
        """Tail-read recent entries (newest first), optionally for one event kind."""
        if not self._path.exists():
            return []

        try:
            lines = self._path.read_text(encoding="utf-8").strip().splitlines()
        except OSError as e:
            logger.warning("AuditLogger.get_recent failed: %s", e)
            return []

        results: list[dict] = []
        for line in reversed(lines):
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if event is not None and entry.get("event") != event.value:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results


__all__ = ["AuditEvent", "AuditLogger", "summarize"]
