# ProtocolGateway — the policy pipeline every remote command goes through.
# Created: 2026-03-07
# Changes:
#   - 2026-03-08: Per-session ordering lock.
#   - 2026-03-10: Domain allowlist checks the target host of navigate/open.
#
# parse -> tier -> confirmation -> domain -> forward -> redact -> audit.
# Policy rejections are answered here as "Error: ..." and never reach the
# kernel host.

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

from domshell.errors import (
    CommandTimeout,
    DOMShellError,
    DomainNotAllowed,
    MalformedInput,
    UserDenied,
)
from domshell.gateway.hub import BridgeHub
from domshell.security.audit import AuditEvent, AuditLogger
from domshell.security.confirm import Confirmer
from domshell.security.redact import redact_sensitive
from domshell.security.tiers import SecurityPolicy, SecurityTier, tier_for
from domshell.shell.commands import tokenize
from domshell.shell.kernel import normalize_url

logger = logging.getLogger(__name__)

# Verbs that never touch a page, so the domain allowlist does not apply
DOMAIN_EXEMPT = frozenset({"help", "pwd", "tabs", "windows", "env", "export", "cd", "here"})
URL_TARGET_VERBS = frozenset({"navigate", "goto", "open"})


def hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


class ProtocolGateway:
    """Authorises, forwards and audits commands for many remote sessions."""

    def __init__(
        self,
        hub: BridgeHub,
        policy: SecurityPolicy,
        audit: AuditLogger,
        confirmer: Confirmer | None = None,
    ):
        self.hub = hub
        self.policy = policy
        self.audit = audit
        self.confirmer = confirmer
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, session: str) -> asyncio.Lock:
        lock = self._locks.get(session)
        if lock is None:
            lock = self._locks[session] = asyncio.Lock()
        return lock

    async def run(self, session: str, command: str) -> str:
        """Run one command for ``session``; commands of one session run in order."""
        async with self._lock(session):
            return await self._run(session, command.strip())

    async def _run(self, session: str, command: str) -> str:
        try:
            tokens = tokenize(command)
        except MalformedInput as e:
            self.audit.record(AuditEvent.ERROR, command, session=session, detail=str(e))
            return f"Error: {e}"
        if not tokens:
            return ""

        verb = tokens[0].lower()
        tier = tier_for(verb)

        reason = self.policy.denial_reason(tier)
        if reason:
            self.audit.record(AuditEvent.DENIED, command, tier, session, reason)
            return f"Error: {reason}"

        try:
            await self._confirm(command, tier)
            await self._check_domain(session, verb, tokens[1:])
        except UserDenied as e:
            self.audit.record(AuditEvent.DENIED_USER, command, tier, session, str(e))
            return f"Error: {e}"
        except DomainNotAllowed as e:
            self.audit.record(AuditEvent.DENIED_DOMAIN, command, tier, session, str(e))
            return f"Error: {e}"
        except DOMShellError as e:
            self.audit.record(AuditEvent.ERROR, command, tier, session, str(e))
            return f"Error: {e}"

        self.audit.record(AuditEvent.EXECUTE, command, tier, session)
        try:
            result = await self.hub.execute(session, command, self.policy.command_timeout)
        except CommandTimeout as e:
            self.audit.record(AuditEvent.TIMEOUT, command, tier, session, str(e))
            return f"Error: {e}"
        except DOMShellError as e:
            self.audit.record(AuditEvent.ERROR, command, tier, session, str(e))
            return f"Error: {e}"

        if tier is SecurityTier.SENSITIVE and not self.policy.expose_cookies:
            result = redact_sensitive(result)
        self.audit.record(AuditEvent.RESULT, command, tier, session, result)
        return result

    async def _confirm(self, command: str, tier: SecurityTier) -> None:
        if not self.policy.needs_confirmation(tier):
            return
        if self.confirmer is None:
            raise UserDenied("Action denied by user.")
        if not await self.confirmer(command):
            raise UserDenied("Action denied by user.")

    async def _check_domain(self, session: str, verb: str, args: list[str]) -> None:
        if not self.policy.allowed_domains or verb in DOMAIN_EXEMPT:
            return
        if verb in URL_TARGET_VERBS:
            if not args:
                return
            url: str | None = normalize_url(args[0])
        else:
            url = await self.hub.query_url(session, self.policy.command_timeout)
        if url is None:
            return
        host = hostname(url)
        if not self.policy.domain_allowed(host):
            allowed = ", ".join(self.policy.allowed_domains)
            raise DomainNotAllowed(
                f"Domain '{host or url}' is not in the allowed list ({allowed})."
            )

    async def close_session(self, session: str) -> None:
        """Forget ``session`` here and on the kernel host."""
        lock = self._locks.get(session)
        if lock is not None and not lock.locked():
            del self._locks[session]
        await self.hub.close_session(session)


__all__ = ["ProtocolGateway", "DOMAIN_EXEMPT", "hostname"]
