"""
Command-line parsing for the DOMShell kernel.
Created: 2026-03-03

Quote-aware tokenisation, the closed set of verbs, and the small option
grammar shared by ls/grep/find/text (``-l``, ``-r``, ``-n N``, ``--offset N``,
``--type ROLE``, ``--count``, ``--into NAME``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from domshell.errors import MalformedInput


class Verb(str, Enum):
    HELP = "help"
    TABS = "tabs"
    WINDOWS = "windows"
    HERE = "here"
    REFRESH = "refresh"
    LS = "ls"
    CD = "cd"
    PWD = "pwd"
    CAT = "cat"
    TEXT = "text"
    TREE = "tree"
    GREP = "grep"
    FIND = "find"
    CLICK = "click"
    FOCUS = "focus"
    TYPE = "type"
    NAVIGATE = "navigate"
    GOTO = "goto"
    OPEN = "open"
    WHOAMI = "whoami"
    ENV = "env"
    EXPORT = "export"
    DEBUG = "debug"

    @classmethod
    def lookup(cls, name: str) -> Verb | None:
        try:
            return cls(name.lower())
        except ValueError:
            return None


_QUOTES = ("'", '"')
_ESCAPABLE = frozenset({"\\", "'", '"', " ", "\t"})


def tokenize(line: str) -> list[str]:
    """Split on blanks, honouring single and double quotes.

    A backslash escapes the next quote, blank or backslash (inside double
    quotes only ``\\"`` and ``\\\\``); before anything else it is kept.
    Raises MalformedInput when a quote is left open.
    """
    tokens: list[str] = []
    current: list[str] = []
    has_token = False
    quote: str | None = None
    chars = iter(line)

    for char in chars:
        if char == "\\" and quote != "'":
            nxt = next(chars, None)
            if nxt is None:
                current.append(char)
            elif nxt in _ESCAPABLE and (quote is None or nxt in ("\\", '"')):
                current.append(nxt)
            else:
                current.extend((char, nxt))
            has_token = True
        elif quote:
            if char == quote:
                quote = None
            else:
                current.append(char)
        elif char in _QUOTES:
            quote = char
            has_token = True
        elif char in (" ", "\t"):
            if has_token:
                tokens.append("".join(current))
                current = []
                has_token = False
        else:
            current.append(char)
            has_token = True

    if quote:
        raise MalformedInput(f"unbalanced {quote} quote")
    if has_token:
        tokens.append("".join(current))
    return tokens


@dataclass
class CommandLine:
    """One parsed command: the verb token and its raw arguments."""

    name: str
    args: list[str] = field(default_factory=list)

    @property
    def verb(self) -> Verb | None:
        return Verb.lookup(self.name)

    @property
    def wants_help(self) -> bool:
        return "--help" in self.args


def parse_command(line: str) -> CommandLine | None:
    """Parse a full command line; None for blank input."""
    tokens = tokenize(line.strip())
    if not tokens:
        return None
    return CommandLine(name=tokens[0].lower(), args=tokens[1:])


_FLAG_ALIASES = {"--long": "-l", "--recursive": "-r"}
_VALUE_OPTIONS = frozenset({"-n", "--offset", "--type", "--into"})


@dataclass
class ParsedArgs:
    flags: set[str] = field(default_factory=set)
    named: dict[str, str] = field(default_factory=dict)
    positional: list[str] = field(default_factory=list)

    def has(self, flag: str) -> bool:
        return flag in self.flags

    def number(self, option: str, default: int = 0) -> int:
        raw = self.named.get(option)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            raise MalformedInput(f"{option}: expected a number, got '{raw}'") from None
        if value < 0:
            raise MalformedInput(f"{option}: must not be negative")
        return value


def parse_args(args: list[str]) -> ParsedArgs:
    parsed = ParsedArgs()
    tokens = iter(args)
    for arg in tokens:
        arg = _FLAG_ALIASES.get(arg, arg)
        if arg in _VALUE_OPTIONS:
            value = next(tokens, None)
            if value is None:
                raise MalformedInput(f"{arg} requires a value")
            parsed.named[arg] = value
        elif arg.startswith("-") and len(arg) > 1:
            parsed.flags.add(arg)
        else:
            parsed.positional.append(arg)
    return parsed


__all__ = [
    "Verb",
    "CommandLine",
    "ParsedArgs",
    "tokenize",
    "parse_command",
    "parse_args",
]
