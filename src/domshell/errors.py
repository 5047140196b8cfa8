# DOMShell exception taxonomy.
# Created: 2026-03-02
#
# Kernel errors are rendered into "<verb>: <message>" text by the command
# kernel; gateway policy errors become "Error: ..." replies plus an audit line.


class DOMShellError(Exception):
    """Base class for every error DOMShell raises on purpose."""


class NotAttached(DOMShellError):
    """No tab context (kernel) or no bridge connection (gateway)."""


class NoSuchEntry(DOMShellError):
    """A path segment, tab target or window id did not resolve."""


class NotADirectory(DOMShellError):
    """A leaf entry was used where a container is required."""


class NoBackingElement(DOMShellError):
    """The entry exists in the accessibility tree but has no DOM element."""


class CommandTimeout(DOMShellError):
    """The kernel host did not answer within the command timeout."""


class Unauthorized(DOMShellError):
    """Missing or invalid bearer token."""


class UserDenied(DOMShellError):
    """The local operator refused (or did not answer) a write confirmation."""


class DomainNotAllowed(DOMShellError):
    """The target page is outside the configured domain allowlist."""


class MalformedInput(DOMShellError):
    """Unbalanced quotes, bad numbers or unusable arguments in a command line."""


__all__ = [
    "DOMShellError",
    "NotAttached",
    "NoSuchEntry",
    "NotADirectory",
    "NoBackingElement",
    "CommandTimeout",
    "Unauthorized",
    "UserDenied",
    "DomainNotAllowed",
    "MalformedInput",
]
