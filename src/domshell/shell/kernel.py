# Navigation kernel: one handler per verb over a shared tab attachment.
# Created: 2026-03-05
# Changes:
#   - 2026-03-07: Staleness recovery keyed on the attachment generation.
#   - 2026-03-09: click reports which strategy worked; type --into.
#   - 2026-03-11: Read commands accept relative paths (../sidebar/nav).
#
# The kernel never keeps per-caller state itself; every call gets the caller's
# Session. All calls must run under TabAttachment.lock (the kernel host does
# this), so a command sees one consistent snapshot from start to finish.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from domshell.browser.protocol import TabInfo, WindowInfo
from domshell.browser.resolver import (
    TABS,
    WINDOWS,
    dom_start,
    is_inside_tab,
    is_number,
    match_tab,
    match_window,
    not_a_directory,
    search,
    split_browser_path,
    split_segments,
    walk_path,
    window_id_from_path,
)
from domshell.browser.snapshot import (
    VirtualEntry,
    child_entries,
    generate_name,
    snapshot_stats,
)
from domshell.errors import (
    DOMShellError,
    MalformedInput,
    NoBackingElement,
    NoSuchEntry,
    NotAttached,
)
from domshell.shell import format as fmt
from domshell.shell.commands import Verb, parse_args, parse_command
from domshell.shell.help import OVERVIEW, help_for
from domshell.shell.session import Session, TabAttachment

logger = logging.getLogger(__name__)

Handler = Callable[[Session, list[str]], Awaitable[str]]

DEFAULT_TREE_DEPTH = 2
DEBUG_RAW_LIMIT = 30
REFRESH_HINT = "(tree will auto-refresh on next command)"


def normalize_url(url: str) -> str:
    """Add ``https://`` to URLs typed without a scheme."""
    if "://" in url or url.startswith(("about:", "data:", "chrome:")):
        return url
    return f"https://{url}"


class NavigationKernel:
    """Executes shell command lines for sessions sharing one TabAttachment."""

    def __init__(self, attachment: TabAttachment, *, navigation_timeout: float = 15.0):
        self.attachment = attachment
        self.controller = attachment.controller
        self.navigation_timeout = navigation_timeout
        self._handlers: dict[Verb, Handler] = {
            Verb.HELP: self._help,
            Verb.TABS: self._tabs,
            Verb.WINDOWS: self._windows,
            Verb.HERE: self._here,
            Verb.REFRESH: self._refresh,
            Verb.LS: self._ls,
            Verb.CD: self._cd,
            Verb.PWD: self._pwd,
            Verb.CAT: self._cat,
            Verb.TEXT: self._text,
            Verb.TREE: self._tree,
            Verb.GREP: self._grep,
            Verb.FIND: self._find,
            Verb.CLICK: self._click,
            Verb.FOCUS: self._focus,
            Verb.TYPE: self._type,
            Verb.NAVIGATE: self._navigate,
            Verb.GOTO: self._navigate,
            Verb.OPEN: self._open,
            Verb.WHOAMI: self._whoami,
            Verb.ENV: self._env,
            Verb.EXPORT: self._export,
            Verb.DEBUG: self._debug,
        }

    async def execute(self, session: Session, line: str) -> str:
        """Run one command line and return its text result.

        Kernel errors become ``<verb>: <message>``; the session survives them.
        Failures from the browser collaborator become ``Error: <message>``.
        """
        try:
            command = parse_command(line)
        except MalformedInput as exc:
            return f"domshell: {exc}"
        if command is None:
            return ""

        verb = command.verb
        if verb is None:
            return (
                f"domshell: {command.name}: command not found\n"
                "Type 'help' for available commands."
            )
        if command.wants_help:
            return help_for(command.name)

        try:
            return await self._handlers[verb](session, command.args)
        except DOMShellError as exc:
            return f"{command.name}: {exc}"
        except Exception as exc:
            logger.warning("Command %r failed: %s", line, exc, exc_info=True)
            return f"Error: {exc}"

    # ------------------------------------------------------------------
    # Snapshot bookkeeping
    # ------------------------------------------------------------------

    def _chain_is_valid(self, session: Session) -> bool:
        nodes = self.attachment.nodes
        chain = session.chain
        if not chain or chain[0] != self.attachment.root_id:
            return False
        return all(node_id in nodes for node_id in chain)

    async def _ensure_fresh(self, session: Session) -> str:
        """Make the attachment match the session's tab and be up to date.

        Returns a notice to prepend to the command output, or "".
        """
        tab_id = session.tab_id
        if tab_id is None:
            raise NotAttached("Not inside a tab. Use 'cd tabs/<id>' or 'here' first.")

        attachment = self.attachment
        refreshed = False
        if attachment.tab_id != tab_id or not attachment.nodes:
            await attachment.attach(tab_id)
            refreshed = True
        elif attachment.stale:
            await attachment.refresh()
            refreshed = True

        if session.generation == attachment.generation:
            return ""
        count = len(attachment.nodes)
        if not self._chain_is_valid(session):
            session.reset_dom(attachment.root_id, attachment.generation)
            return f"(page changed - tree refreshed, {count} nodes, path reset to tab root)\n"
        session.generation = attachment.generation
        return f"(tree auto-refreshed, {count} nodes)\n" if refreshed else ""

    async def _load_tab(self, tab: TabInfo) -> str | None:
        """Attach to ``tab`` with a fresh snapshot; returns the root node id."""
        if self.attachment.tab_id == tab.id:
            await self.attachment.refresh()
        else:
            await self.attachment.attach(tab.id)
        return self.attachment.root_id

    def _entered(self, tab: TabInfo) -> str:
        return fmt.entered_tab(tab, len(self.attachment.nodes), self.attachment.frame_count)

    def _current_id(self, session: Session) -> str:
        node_id = session.current_node_id
        if node_id is None:
            raise NotAttached("No accessibility tree loaded for this tab. Try 'refresh'.")
        return node_id

    def _target(self, session: Session, target: str | None = None) -> VirtualEntry:
        """Entry for a path relative to the current node (the node itself when omitted)."""
        self._current_id(session)
        nodes = self.attachment.nodes
        return walk_path(session.chain, session.dom_segments, target or "", nodes).target(nodes)

    # ------------------------------------------------------------------
    # Browser level
    # ------------------------------------------------------------------

    async def _help(self, session: Session, args: list[str]) -> str:
        if args:
            return help_for(args[0])
        return OVERVIEW

    async def _attached_tab(self) -> TabInfo | None:
        if self.attachment.tab_id is None:
            return None
        try:
            return await self.controller.get_tab(self.attachment.tab_id)
        except NoSuchEntry:
            return None

    async def _browser_listing(self, path: list[str]) -> str:
        windows = await self.controller.list_windows()
        current = self.attachment.tab_id
        if not path:
            return fmt.browser_root(windows, await self._attached_tab())
        if path == [TABS]:
            return fmt.tabs_table(windows, current)
        if path == [WINDOWS]:
            return fmt.windows_tree(windows, current)
        if len(path) == 2 and path[0] == WINDOWS:
            return fmt.window_tabs(match_window(windows, path[1]), current)
        raise NoSuchEntry(f"{'/'.join(path)}: Invalid browser path")

    async def _tabs(self, session: Session, args: list[str]) -> str:
        return await self._browser_listing([TABS])

    async def _windows(self, session: Session, args: list[str]) -> str:
        return await self._browser_listing([WINDOWS])

    async def _here(self, session: Session, args: list[str]) -> str:
        tab = await self.controller.focused_tab()
        if tab is None:
            raise NoSuchEntry("No active tab found in the focused window")
        if session.tab_id == tab.id:
            return f"Already in tab {tab.id} - {tab.title}"
        root_id = await self._load_tab(tab)
        session.enter([TABS, str(tab.id)], root_id, self.attachment.generation)
        return self._entered(tab)

    async def _refresh(self, session: Session, args: list[str]) -> str:
        tab_id = session.tab_id
        if tab_id is None:
            raise NotAttached("Not inside a tab. Use 'cd tabs/<id>' or 'here' first.")
        if self.attachment.tab_id == tab_id:
            await self.attachment.refresh()
        else:
            await self.attachment.attach(tab_id)
        session.reset_dom(self.attachment.root_id, self.attachment.generation)
        return f"Refreshed. {len(self.attachment.nodes)} AX nodes loaded."

    # ------------------------------------------------------------------
    # cd / pwd
    # ------------------------------------------------------------------

    async def _cd(self, session: Session, args: list[str]) -> str:
        target = args[0] if args else ""
        if target in ("", "~", "/"):
            session.go_root()
            return ""

        notice = ""
        if target.startswith(("~/", "/")):
            path: list[str] = []
            chain: list[str] = []
        else:
            if session.inside_tab:
                notice = await self._ensure_fresh(session)
            path, chain = list(session.path), list(session.chain)

        left_tab: int | None = None
        entered: TabInfo | None = None
        windows: list[WindowInfo] | None = None

        for segment in split_segments(target.lstrip("~")):
            if segment == ".":
                continue

            start = dom_start(path)
            if start >= 0 and (segment != ".." or len(path) > start):
                walk = walk_path(
                    chain, path[start:], segment, self.attachment.nodes, containers_only=True
                )
                path = path[:start] + walk.names
                chain = walk.chain
                continue

            if segment == "..":
                if start >= 0:
                    left_tab = int(path[start - 1])
                    path.pop()
                    chain = []
                    entered = None
                elif path:
                    path.pop()
                continue

            if not path:
                if segment not in (TABS, WINDOWS):
                    raise NoSuchEntry(f"{segment}: No such file or directory (try 'tabs' or 'windows')")
                path.append(segment)
                continue

            if windows is None:
                windows = await self.controller.list_windows()
            if path == [WINDOWS]:
                path.append(str(match_window(windows, segment).id))
                continue

            window_id = window_id_from_path(path)
            tab = match_tab(windows, segment, window_id=window_id)
            root_id = await self._load_tab(tab)
            path.append(str(tab.id))
            chain = [root_id] if root_id else []
            entered = tab

        session.path = path
        session.chain = chain
        session.generation = self.attachment.generation

        if not is_inside_tab(path) and left_tab is not None and self.attachment.tab_id == left_tab:
            await self.attachment.detach()
        if entered is not None and is_inside_tab(path):
            return notice + self._entered(entered)
        return notice.rstrip("\n")

    async def _pwd(self, session: Session, args: list[str]) -> str:
        return session.pwd()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def _normalize_browser_path(self, base: list[str], target: str) -> list[str]:
        path = list(base)
        for segment in split_segments(target):
            if segment == "..":
                if path:
                    path.pop()
            elif segment != ".":
                path.append(segment)
        return path

    async def _ls(self, session: Session, args: list[str]) -> str:
        parsed = parse_args(args)
        target = parsed.positional[0] if parsed.positional else None

        if target is not None and target.startswith(("~", "/")):
            prefix, dom = split_browser_path(self._normalize_browser_path([], target.lstrip("~")))
            if not is_inside_tab(prefix):
                return await self._browser_listing(prefix)
            if not session.inside_tab or prefix != split_browser_path(session.path)[0]:
                raise NoSuchEntry(f"{target}: not the current tab (cd into it first)")
            notice = await self._ensure_fresh(session)
            self._current_id(session)
            nodes = self.attachment.nodes
            entry = walk_path(session.chain[:1], [], "/".join(dom), nodes).target(nodes)
        elif not session.inside_tab:
            return await self._browser_listing(self._normalize_browser_path(session.path, target or ""))
        else:
            notice = await self._ensure_fresh(session)
            entry = self._target(session, target)

        if not entry.is_container:
            return notice + fmt.entry_listing([entry], long=parsed.has("-l"))

        nodes = self.attachment.nodes
        entries = child_entries(entry.node_id, nodes)
        if parsed.has("-r"):
            nested = [
                replace(grandchild, name=f"{child.name}/{grandchild.name}")
                for child in entries
                if child.is_container
                for grandchild in child_entries(child.node_id, nodes)
            ]
            entries = entries + nested

        role = parsed.named.get("--type")
        if role:
            entries = [e for e in entries if e.role.lower() == role.lower()]

        if parsed.has("--count"):
            return notice + fmt.count_summary(entries)
        return notice + fmt.entry_listing(
            entries,
            long=parsed.has("-l"),
            offset=parsed.number("--offset"),
            limit=parsed.number("-n"),
        )

    async def _cat(self, session: Session, args: list[str]) -> str:
        if not args:
            return "Usage: cat <path> (see cat --help)"
        notice = await self._ensure_fresh(session)
        entry = self._target(session, args[0])
        child_count = (
            len(child_entries(entry.node_id, self.attachment.nodes)) if entry.is_container else None
        )
        text = await self.controller.text_content(entry.backend_id) if entry.backend_id else ""
        return notice + fmt.cat_entry(entry, child_count, text)

    async def _text(self, session: Session, args: list[str]) -> str:
        parsed = parse_args(args)
        notice = await self._ensure_fresh(session)
        target = parsed.positional[0] if parsed.positional else None
        entry = self._target(session, target)
        label = entry.name if target or session.dom_segments else "/"
        if not entry.backend_id:
            raise NoBackingElement(f"{label}: No DOM node backing (AX-only node)")
        text = await self.controller.text_content(entry.backend_id)
        return notice + fmt.text_block(label, text, parsed.number("-n"))

    async def _tree(self, session: Session, args: list[str]) -> str:
        depth: int | None = None
        target: str | None = None
        for arg in args:
            if depth is None and is_number(arg):
                depth = int(arg)
            elif target is None:
                target = arg
        notice = await self._ensure_fresh(session)
        entry = self._target(session, target)
        if not entry.is_container:
            raise not_a_directory(entry)
        node = self.attachment.nodes[entry.node_id]
        name = entry.name if (target or session.dom_segments) else generate_name(node)
        depth = DEFAULT_TREE_DEPTH if depth is None else depth
        return notice + fmt.tree_view(name, entry.node_id, self.attachment.nodes, depth)

    async def _grep(self, session: Session, args: list[str]) -> str:
        parsed = parse_args(args)
        if not parsed.positional:
            return "Usage: grep [options] <pattern> [path] (see grep --help)"
        pattern = parsed.positional[0]
        target = parsed.positional[1] if len(parsed.positional) > 1 else None
        notice = await self._ensure_fresh(session)
        entry = self._target(session, target)
        hits = search(
            entry.node_id,
            self.attachment.nodes,
            pattern,
            limit=parsed.number("-n"),
            recursive=parsed.has("-r"),
        )
        return notice + fmt.search_results(hits, pattern)

    async def _find(self, session: Session, args: list[str]) -> str:
        parsed = parse_args(args)
        role = parsed.named.get("--type")
        pattern = parsed.positional[0] if parsed.positional else ""
        if not pattern and not role:
            return "Usage: find [options] <pattern> [path] (see find --help)"
        target = parsed.positional[1] if len(parsed.positional) > 1 else None
        notice = await self._ensure_fresh(session)
        entry = self._target(session, target)
        hits = search(
            entry.node_id,
            self.attachment.nodes,
            pattern,
            role=role,
            limit=parsed.number("-n"),
        )
        label = pattern if pattern else f"--type {role}"
        return notice + fmt.search_results(hits, label)

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def _element(self, session: Session, target: str) -> tuple[str, VirtualEntry, int]:
        notice = await self._ensure_fresh(session)
        entry = self._target(session, target)
        if not entry.backend_id:
            raise NoBackingElement(f"{entry.name}: No DOM node backing (AX-only node)")
        return notice, entry, entry.backend_id

    async def _click(self, session: Session, args: list[str]) -> str:
        if not args:
            return "Usage: click <path> (see click --help)"
        notice, entry, backend_id = await self._element(session, args[0])
        try:
            await self.controller.click(backend_id)
            strategy = "element click"
        except Exception as exc:
            logger.debug("Element click on %s failed (%s), using coordinates", entry.name, exc)
            await self.controller.click_at(backend_id)
            strategy = "coordinate click"
        self.attachment.mark_stale()
        return notice + f"Clicked: {entry.name} ({entry.role}) via {strategy}\n{REFRESH_HINT}"

    async def _focus(self, session: Session, args: list[str]) -> str:
        if not args:
            return "Usage: focus <path> (see focus --help)"
        notice, entry, backend_id = await self._element(session, args[0])
        await self.controller.focus(backend_id)
        self.attachment.mark_stale()
        return notice + f"Focused: {entry.name}"

    async def _type(self, session: Session, args: list[str]) -> str:
        notice = ""
        into: VirtualEntry | None = None
        if args and args[0] == "--into":
            if len(args) < 2:
                raise MalformedInput("--into requires a value")
            notice, into, backend_id = await self._element(session, args[1])
            args = args[2:]
        text = " ".join(args)
        if not text:
            return "Usage: type [--into <path>] <text> (see type --help)"
        if into is None:
            notice = await self._ensure_fresh(session)
        else:
            await self.controller.focus(backend_id)
        await self.controller.type_text(text)
        self.attachment.mark_stale()
        suffix = f" into {into.name}" if into is not None else ""
        return notice + f"Typed {len(text)} characters{suffix}"

    async def _navigate(self, session: Session, args: list[str]) -> str:
        if not args:
            return "Usage: navigate <url> (see navigate --help)"
        tab_id = session.tab_id
        if tab_id is None:
            raise NotAttached("Not inside a tab. Use 'cd tabs/<id>' or 'open <url>' instead.")
        url = normalize_url(args[0])

        await self.attachment.detach()
        await self.controller.navigate(tab_id, url, self.navigation_timeout)
        await self.attachment.attach(tab_id)
        session.reset_dom(self.attachment.root_id, self.attachment.generation)

        return "\n".join([
            f"Navigated to {url}",
            f"  URL:   {await self.controller.page_url()}",
            f"  Title: {await self.controller.page_title()}",
            f"  AX Nodes: {len(self.attachment.nodes)}",
        ])

    async def _open(self, session: Session, args: list[str]) -> str:
        if not args:
            return "Usage: open <url> (see open --help)"
        url = normalize_url(args[0])
        tab = await self.controller.open_tab(url, self.navigation_timeout)
        root_id = await self._load_tab(tab)
        session.enter([TABS, str(tab.id)], root_id, self.attachment.generation)
        return "\n".join([
            f"Opened new tab {tab.id}",
            f"  Title: {tab.title}",
            f"  URL:   {tab.url or url}",
            f"  AX Nodes: {len(self.attachment.nodes)}",
        ])

    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------

    async def _whoami(self, session: Session, args: list[str]) -> str:
        notice = await self._ensure_fresh(session)
        url = await self.controller.page_url()
        cookies = await self.controller.cookies(url)
        return notice + fmt.whoami(url, cookies)

    async def _env(self, session: Session, args: list[str]) -> str:
        return fmt.env_listing(session.env)

    async def _export(self, session: Session, args: list[str]) -> str:
        key, sep, value = " ".join(args).partition("=")
        key = key.strip()
        if not sep or not key:
            return "Usage: export KEY=VALUE"
        session.env[key] = value.strip()
        return f"{key}={session.env[key]}"

    async def _debug(self, session: Session, args: list[str]) -> str:
        subcommand = args[0] if args else "stats"
        notice = await self._ensure_fresh(session)
        nodes = self.attachment.nodes

        if subcommand == "stats":
            stats = snapshot_stats(nodes)
            cwd = nodes.get(self._current_id(session))
            lines = [
                "--- Debug: tree stats ---",
                f"  Total nodes:   {stats.total}",
                f"  Ignored:       {stats.ignored}",
                f"  Generic:       {stats.generic}",
                f"  With children: {stats.with_children}",
                f"  Iframes:       {stats.iframes}",
            ]
            if cwd is not None:
                lines += [
                    "",
                    f"  CWD id:       {cwd.node_id}",
                    f"  CWD role:     {cwd.role}",
                    f"  CWD name:     {cwd.name}",
                    f"  CWD childIds: {len(cwd.child_ids)}",
                    f"  CWD ignored:  {str(cwd.ignored).lower()}",
                ]
            return notice + "\n".join(lines)

        if subcommand == "raw":
            cwd = nodes.get(self._current_id(session))
            if cwd is None:
                raise NoSuchEntry("current node is not in the tree")
            lines = [f"--- Debug: raw children of {cwd.node_id} ({len(cwd.child_ids)}) ---"]
            for child_id in cwd.child_ids[:DEBUG_RAW_LIMIT]:
                child = nodes.get(child_id)
                if child is None:
                    lines.append(f"  {child_id}: NOT IN MAP")
                    continue
                ignored = " [IGNORED]" if child.ignored else ""
                lines.append(
                    f"  {child_id}: role={child.role} name={child.name!r} "
                    f"children={len(child.child_ids)}{ignored}"
                )
            if len(cwd.child_ids) > DEBUG_RAW_LIMIT:
                lines.append(f"  ... and {len(cwd.child_ids) - DEBUG_RAW_LIMIT} more")
            return notice + "\n".join(lines)

        if subcommand == "node":
            if len(args) < 2:
                return "Usage: debug node <id>"
            node = nodes.get(args[1])
            if node is None:
                raise NoSuchEntry(f"{args[1]}: node not found")
            return notice + "\n".join([
                f"--- Debug: node {node.node_id} ---",
                f"  Role:     {node.role}",
                f"  Name:     {node.name}",
                f"  Ignored:  {str(node.ignored).lower()}",
                f"  Backend:  {node.backend_id if node.backend_id is not None else '-'}",
                f"  Children: {', '.join(node.child_ids) or '-'}",
            ])

        return "Usage: debug [stats|raw|node <id>]"


__all__ = ["NavigationKernel", "normalize_url"]
