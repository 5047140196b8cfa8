# Navigation kernel package.
# Created: 2026-03-03

from domshell.shell.commands import CommandLine, Verb, parse_command, tokenize
from domshell.shell.session import Session, TabAttachment
from domshell.shell.kernel import NavigationKernel

__all__ = [
    "CommandLine",
    "Verb",
    "parse_command",
    "tokenize",
    "Session",
    "TabAttachment",
    "NavigationKernel",
]
