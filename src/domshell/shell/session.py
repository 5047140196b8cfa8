# Per-caller session state and the shared tab attachment.
# Created: 2026-03-04
#
# Many sessions share one TabAttachment (one controller, one attached tab).
# A session whose tab is no longer the attached one re-attaches on its next
# DOM command; the node-map generation tells it whether its node-id chain
# still has to be checked against a newer snapshot.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from domshell.browser.protocol import DomController
from domshell.browser.resolver import dom_start, split_browser_path, tab_id_from_path
from domshell.browser.snapshot import NodeMap, build_node_map, count_frames, find_root

logger = logging.getLogger(__name__)


def default_env() -> dict[str, str]:
    return {
        "SHELL": "/bin/domshell",
        "TERM": "xterm-256color",
        "PS1": "agent@shell:$PWD$ ",
    }


class TabAttachment:
    """The one tab the controller is attached to, plus its cached snapshot.

    ``nodes`` is only ever replaced wholesale; readers holding the old map
    keep a consistent view. ``lock`` serialises kernel commands.
    """

    def __init__(self, controller: DomController):
        self.controller = controller
        self.tab_id: int | None = None
        self.nodes: NodeMap = {}
        self.stale = False
        self.generation = 0
        self.lock = asyncio.Lock()
        controller.set_change_listener(self._on_change)

    def _on_change(self, tab_id: int, event: str) -> None:
        if tab_id == self.tab_id:
            logger.debug("Tab %d changed (%s), snapshot marked stale", tab_id, event)
            self.stale = True

    def mark_stale(self) -> None:
        self.stale = True

    @property
    def root_id(self) -> str | None:
        root = find_root(self.nodes)
        return root.node_id if root else None

    @property
    def frame_count(self) -> int:
        return count_frames(self.nodes)

    async def attach(self, tab_id: int) -> None:
        """Attach to ``tab_id`` (detaching any other tab) and load its snapshot."""
        if self.tab_id == tab_id and self.nodes:
            return
        self.tab_id = None
        self.nodes = {}
        await self.controller.attach(tab_id)
        self.tab_id = tab_id
        await self.refresh()
        logger.info("Attached to tab %d (%d nodes)", tab_id, len(self.nodes))

    async def refresh(self) -> NodeMap:
        nodes = build_node_map(await self.controller.get_nodes())
        self.nodes = nodes
        self.stale = False
        self.generation += 1
        return nodes

    async def detach(self) -> None:
        if self.tab_id is None:
            return
        logger.info("Detaching from tab %d", self.tab_id)
        await self.controller.detach()
        self.tab_id = None
        self.nodes = {}
        self.stale = False
        self.generation += 1


@dataclass
class Session:
    """Where one remote caller is in the namespace.

    ``path`` is the unified browser + DOM path. Inside a tab, ``chain`` holds
    the snapshot root followed by one node id per DOM segment; outside a tab
    it is empty.
    """

    id: str
    path: list[str] = field(default_factory=list)
    chain: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=default_env)
    generation: int = -1

    @property
    def tab_id(self) -> int | None:
        return tab_id_from_path(self.path)

    @property
    def inside_tab(self) -> bool:
        return self.tab_id is not None

    @property
    def dom_segments(self) -> list[str]:
        return split_browser_path(self.path)[1]

    @property
    def current_node_id(self) -> str | None:
        return self.chain[-1] if self.chain else None

    def pwd(self) -> str:
        return "~/" + "/".join(self.path) if self.path else "~"

    def enter(self, tab_path: list[str], root_id: str | None, generation: int) -> None:
        self.path = list(tab_path)
        self.chain = [root_id] if root_id else []
        self.generation = generation

    def reset_dom(self, root_id: str | None, generation: int) -> None:
        """Drop the DOM portion of the path, keep the browser prefix."""
        start = dom_start(self.path)
        if start >= 0:
            self.path = self.path[:start]
        self.chain = [root_id] if root_id else []
        self.generation = generation

    def go_root(self) -> None:
        self.path = []
        self.chain = []


__all__ = ["Session", "TabAttachment", "default_env"]
