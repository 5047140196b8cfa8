# Security tiers for remote commands.
# Created: 2026-03-06
#
# Every command verb maps to exactly one tier. Anything that is not a
# navigation, write or sensitive verb (including unknown verbs, which the
# kernel answers with "command not found") is read-only.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domshell.config import Settings


class SecurityTier(str, Enum):
    READ = "read"
    NAVIGATE = "navigate"
    WRITE = "write"
    SENSITIVE = "sensitive"


_TIERS: dict[str, SecurityTier] = {
    "navigate": SecurityTier.NAVIGATE,
    "goto": SecurityTier.NAVIGATE,
    "open": SecurityTier.NAVIGATE,
    "click": SecurityTier.WRITE,
    "focus": SecurityTier.WRITE,
    "type": SecurityTier.WRITE,
    "whoami": SecurityTier.SENSITIVE,
}


def tier_for(verb: str) -> SecurityTier:
    return _TIERS.get(verb.lower(), SecurityTier.READ)


@dataclass
class SecurityPolicy:
    """What the gateway lets remote callers do."""

    allow_write: bool = False
    allow_sensitive: bool = False
    no_confirm: bool = False
    expose_cookies: bool = False
    allowed_domains: list[str] = field(default_factory=list)
    command_timeout: float = 30.0
    confirm_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> SecurityPolicy:
        return cls(
            allow_write=settings.allow_write,
            allow_sensitive=settings.allow_sensitive,
            no_confirm=settings.no_confirm,
            expose_cookies=settings.expose_cookies,
            allowed_domains=settings.domain_list,
            command_timeout=settings.command_timeout,
            confirm_timeout=settings.confirm_timeout,
        )

    def denial_reason(self, tier: SecurityTier) -> str | None:
        """Why ``tier`` is refused under this policy, or None when allowed."""
        if tier is SecurityTier.NAVIGATE and not self.allow_write:
            return (
                "Navigation commands (navigate/open) are disabled. "
                "Start the MCP server with --allow-write or --allow-all."
            )
        if tier is SecurityTier.WRITE and not self.allow_write:
            return (
                "Write commands (click/focus/type) are disabled. "
                "Start the MCP server with --allow-write or --allow-all."
            )
        if tier is SecurityTier.SENSITIVE and not self.allow_sensitive:
            return (
                "Sensitive commands (whoami) are disabled. "
                "Start the MCP server with --allow-sensitive or --allow-all."
            )
        return None

    def needs_confirmation(self, tier: SecurityTier) -> bool:
        return tier is SecurityTier.WRITE and not self.no_confirm

    def domain_allowed(self, host: str) -> bool:
        """Exact match or subdomain of an allowed domain; no allowlist allows all."""
        if not self.allowed_domains:
            return True
        host = host.lower().rstrip(".")
        return any(host == d or host.endswith("." + d) for d in self.allowed_domains)


__all__ = ["SecurityTier", "SecurityPolicy", "tier_for"]
