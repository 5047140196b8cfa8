from domshell.security.tiers import SecurityPolicy, SecurityTier, tier_for
from domshell.security.audit import AuditEvent, AuditLogger
from domshell.security.confirm import TerminalConfirmer
from domshell.security.redact import redact_output, redact_sensitive

__all__ = [
    "SecurityPolicy", "SecurityTier", "tier_for",
    "AuditEvent", "AuditLogger",
    "TerminalConfirmer",
    "redact_output", "redact_sensitive",
]
