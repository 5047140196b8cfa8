"""MCP server for ``domshell serve``.

One FastAPI application carries three surfaces:

- ``/mcp``: MCP streamable HTTP, behind a bearer-token check that runs
  before any MCP parsing. Each MCP session gets its own kernel session.
- ``/bridge``: the websocket the kernel host (``domshell bridge``) dials
  into. Only one bridge connection is active; a newer one replaces it.
- ``/health``: bridge status and the active security flags.

Created: 2026-03-08
Changes:
  - 2026-03-09: Write and sensitive tools only registered when enabled.
  - 2026-03-11: DELETE /mcp closes the kernel session on the bridge.
"""

import hmac
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from urllib.parse import parse_qs

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from mcp.server.fastmcp import Context, FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from mcp.types import ToolAnnotations
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from domshell import __version__
from domshell.config import Settings, get_access_token, get_settings
from domshell.gateway.gateway import ProtocolGateway
from domshell.gateway.hub import BridgeHub
from domshell.security.audit import AuditEvent, AuditLogger
from domshell.security.confirm import Confirmer, TerminalConfirmer
from domshell.security.tiers import SecurityPolicy

logger = logging.getLogger(__name__)

BRIDGE_UNAUTHORIZED = 4001

UNAUTHORIZED_BODY = {
    "jsonrpc": "2.0",
    "error": {"code": -32000, "message": "Unauthorized: invalid or missing auth token"},
    "id": None,
}

MCP_INSTRUCTIONS = """\
DOMShell exposes the open browser as a filesystem. Tabs live under ~/tabs,
windows under ~/windows. Inside a tab, page elements are files and
directories named after their accessible names:
[d] directories (containers you can cd into), [x] interactive elements
(buttons, links, inputs), [-] static content.

Typical flow: domshell_tabs or domshell_here to pick a tab, domshell_cd into
it, domshell_ls / domshell_find / domshell_grep to locate elements,
domshell_text or domshell_cat to read them, and domshell_click / domshell_type
to act (write tools only exist when the server allows writes).

Every session keeps its own working directory. Commands of one session run
in order. When the page changes, the tree refreshes on the next command and
the path may reset to the tab root; the result says so. domshell_refresh
forces a re-fetch."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def quote_arg(value: str) -> str:
    """Quote ``value`` for the kernel tokenizer when it contains blanks or quotes."""
    if value and not any(c in value for c in " \t'\"\\"):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_command(verb: str, *parts: str | None) -> str:
    """Join a verb and its non-empty arguments into one command line."""
    args = [quote_arg(p) for p in parts if p]
    return " ".join([verb, *args])


def _session_id(ctx: Context) -> str:
    try:
        request = ctx.request_context.request
    except ValueError:
        return "local"
    session_id = request.headers.get("mcp-session-id") if request is not None else None
    return session_id or f"session-{id(ctx.session)}"


def _token_matches(candidate: str | None, expected: str) -> bool:
    return bool(candidate) and hmac.compare_digest(candidate, expected)


class BearerAuthMiddleware:
    """Pure ASGI guard in front of the MCP app.

    Accepts ``Authorization: Bearer <token>`` or ``?token=<token>``. A DELETE
    carrying ``mcp-session-id`` ends that session, so ``on_session_closed``
    is told before the request is passed on.
    """

    def __init__(
        self,
        app: ASGIApp,
        token: str,
        on_session_closed: Callable[[str], Awaitable[None]] | None = None,
    ):
        self.app = app
        self.token = token
        self.on_session_closed = on_session_closed

    def _authorized(self, scope: Scope) -> bool:
        headers = Headers(scope=scope)
        scheme, _, credentials = headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer" and _token_matches(credentials.strip(), self.token):
            return True
        query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
        return _token_matches(next(iter(query.get("token", [])), None), self.token)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if not self._authorized(scope):
            logger.warning("Rejected unauthenticated MCP request to %s", scope.get("path"))
            response = JSONResponse(UNAUTHORIZED_BODY, status_code=401)
            await response(scope, receive, send)
            return

        if scope["method"] == "DELETE" and self.on_session_closed is not None:
            session_id = Headers(scope=scope).get("mcp-session-id")
            if session_id:
                await self.on_session_closed(session_id)

        await self.app(scope, receive, send)


# ---------------------------------------------------------------------------
# MCP tools
# ---------------------------------------------------------------------------


def build_mcp(gateway: ProtocolGateway, policy: SecurityPolicy) -> FastMCP:
    """FastMCP server whose tools all funnel into ``gateway.run``."""
    mcp = FastMCP(name="domshell", instructions=MCP_INSTRUCTIONS)
    mcp.settings.json_response = True
    # Requests are bearer-authenticated; Host/Origin checks would only block
    # remote clients that already hold the token.
    mcp.settings.transport_security = TransportSecuritySettings(
        enable_dns_rebinding_protection=False
    )

    read_only = ToolAnnotations(readOnlyHint=True, openWorldHint=True)
    destructive = ToolAnnotations(readOnlyHint=False, destructiveHint=True, openWorldHint=True)

    async def run(ctx: Context, command: str) -> str:
        return await gateway.run(_session_id(ctx), command)

    @mcp.tool(
        name="domshell_tabs",
        description="List all open browser tabs with IDs, titles, URLs and windows. Same as 'ls ~/tabs'.",
        annotations=read_only,
    )
    async def domshell_tabs(ctx: Context) -> str:
        return await run(ctx, "tabs")

    @mcp.tool(
        name="domshell_windows",
        description="List browser windows with their tabs. Same as 'ls ~/windows'.",
        annotations=read_only,
    )
    async def domshell_windows(ctx: Context) -> str:
        return await run(ctx, "windows")

    @mcp.tool(
        name="domshell_here",
        description="Enter the active tab of the focused browser window.",
        annotations=read_only,
    )
    async def domshell_here(ctx: Context) -> str:
        return await run(ctx, "here")

    @mcp.tool(
        name="domshell_ls",
        description=(
            "List children of the current directory. Options: -l long format, -r one level "
            "deeper, -n N limit, --offset N pagination, --type ROLE filter, --count totals "
            "only. A path such as 'main/form' or '~/tabs' may follow the options."
        ),
        annotations=read_only,
    )
    async def domshell_ls(ctx: Context, options: str = "") -> str:
        return await run(ctx, f"ls {options}".strip())

    @mcp.tool(
        name="domshell_cd",
        description=(
            "Change directory: 'main/form', '..', '~' (browser root), '~/tabs/<id>', "
            "'tabs/<title-or-url-pattern>', 'windows/<id>/<tab>'."
        ),
        annotations=read_only,
    )
    async def domshell_cd(ctx: Context, path: str) -> str:
        return await run(ctx, build_command("cd", path))

    @mcp.tool(name="domshell_pwd", description="Print the current path.", annotations=read_only)
    async def domshell_pwd(ctx: Context) -> str:
        return await run(ctx, "pwd")

    @mcp.tool(
        name="domshell_refresh",
        description="Re-fetch the accessibility tree of the current tab and return to its root.",
        annotations=read_only,
    )
    async def domshell_refresh(ctx: Context) -> str:
        return await run(ctx, "refresh")

    @mcp.tool(
        name="domshell_cat",
        description="Show role, type, ids, value, child count and text of an element.",
        annotations=read_only,
    )
    async def domshell_cat(ctx: Context, name: str) -> str:
        return await run(ctx, build_command("cat", name))

    @mcp.tool(
        name="domshell_find",
        description=(
            "Recursive search below the current directory. Matches name, role and value; "
            "returns relative paths. Filter with type (an accessibility role such as "
            "'link' or 'button')."
        ),
        annotations=read_only,
    )
    async def domshell_find(
        ctx: Context, pattern: str = "", type: str = "", limit: int = 0
    ) -> str:
        return await run(
            ctx,
            build_command(
                "find",
                pattern,
                "--type" if type else None,
                type,
                "-n" if limit else None,
                str(limit) if limit else None,
            ),
        )

    @mcp.tool(
        name="domshell_grep",
        description=(
            "Search children for a pattern (name, role, value; case-insensitive). "
            "Set recursive to search all descendants."
        ),
        annotations=read_only,
    )
    async def domshell_grep(
        ctx: Context, pattern: str, recursive: bool = False, limit: int = 0
    ) -> str:
        return await run(
            ctx,
            build_command(
                "grep",
                "-r" if recursive else None,
                "-n" if limit else None,
                str(limit) if limit else None,
                pattern,
            ),
        )

    @mcp.tool(
        name="domshell_tree",
        description="Tree view of the current directory (default depth 2).",
        annotations=read_only,
    )
    async def domshell_tree(ctx: Context, depth: int = 0) -> str:
        return await run(ctx, build_command("tree", str(depth) if depth else None))

    @mcp.tool(
        name="domshell_text",
        description="Extract the text of an element and its descendants (default: current directory).",
        annotations=read_only,
    )
    async def domshell_text(ctx: Context, name: str = "", limit: int = 0) -> str:
        return await run(
            ctx,
            build_command(
                "text", name, "-n" if limit else None, str(limit) if limit else None
            ),
        )

    if policy.allow_write:

        @mcp.tool(
            name="domshell_click",
            description="Click an element (e.g. 'submit_btn' or 'form/submit_btn').",
            annotations=destructive,
        )
        async def domshell_click(ctx: Context, name: str) -> str:
            return await run(ctx, build_command("click", name))

        @mcp.tool(
            name="domshell_focus",
            description="Focus an input element before typing.",
            annotations=destructive,
        )
        async def domshell_focus(ctx: Context, name: str) -> str:
            return await run(ctx, build_command("focus", name))

        @mcp.tool(
            name="domshell_type",
            description="Type text into the focused element.",
            annotations=destructive,
        )
        async def domshell_type(ctx: Context, text: str) -> str:
            return await run(ctx, build_command("type", text))

        @mcp.tool(
            name="domshell_navigate",
            description="Load a URL in the current tab ('example.com' gets https://).",
            annotations=destructive,
        )
        async def domshell_navigate(ctx: Context, url: str) -> str:
            return await run(ctx, build_command("navigate", url))

        @mcp.tool(
            name="domshell_open",
            description="Open a URL in a new tab and enter it.",
            annotations=destructive,
        )
        async def domshell_open(ctx: Context, url: str) -> str:
            return await run(ctx, build_command("open", url))

    if policy.allow_sensitive:

        @mcp.tool(
            name="domshell_whoami",
            description="Authentication status of the current page from its cookies.",
            annotations=read_only,
        )
        async def domshell_whoami(ctx: Context) -> str:
            return await run(ctx, "whoami")

    @mcp.tool(
        name="domshell_execute",
        description=(
            "Run any DOMShell command line (e.g. 'env', 'export K=V', 'debug stats'). "
            "Write and sensitive commands are subject to the same restrictions."
        ),
    )
    async def domshell_execute(ctx: Context, command: str) -> str:
        return await run(ctx, command)

    return mcp


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    *,
    confirmer: Confirmer | None = None,
    token: str | None = None,
) -> FastAPI:
    """Build the gateway application (MCP + bridge + health)."""
    settings = settings or get_settings()
    token = token or settings.access_token or get_access_token()
    policy = SecurityPolicy.from_settings(settings)

    audit = AuditLogger(settings.audit_log_path)
    hub = BridgeHub(audit, timeout=policy.command_timeout)
    if confirmer is None:
        confirmer = TerminalConfirmer(timeout=policy.confirm_timeout)
    gateway = ProtocolGateway(hub, policy, audit, confirmer)

    mcp = build_mcp(gateway, policy)
    mcp_app = mcp.streamable_http_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with mcp.session_manager.run():
            logger.info("DOMShell gateway ready (audit log: %s)", audit.path)
            yield

    app = FastAPI(title="DOMShell", version=__version__, lifespan=lifespan)
    app.state.gateway = gateway
    app.state.hub = hub
    app.state.mcp = mcp
    app.state.audit = audit

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "bridge_connected": hub.connected,
            "allow_write": policy.allow_write,
            "allow_sensitive": policy.allow_sensitive,
            "no_confirm": policy.no_confirm,
            "expose_cookies": policy.expose_cookies,
            "allowed_domains": policy.allowed_domains,
        }

    @app.websocket("/bridge")
    async def bridge(websocket: WebSocket, token_param: str | None = Query(None, alias="token")):
        """Kernel host connection; closes with 4001 on a bad token."""
        await websocket.accept()
        if not _token_matches(token_param, token):
            client = websocket.client.host if websocket.client else "unknown"
            logger.warning("Rejected bridge connection from %s: bad token", client)
            audit.record(AuditEvent.REJECTED, detail=f"bridge connection from {client}")
            await websocket.close(code=BRIDGE_UNAUTHORIZED, reason="Unauthorized")
            return

        await hub.attach(websocket)
        try:
            while True:
                hub.handle_frame(await websocket.receive_text())
        except WebSocketDisconnect:
            logger.debug("Bridge websocket closed")
        finally:
            hub.detach(websocket)

    app.mount("/", BearerAuthMiddleware(mcp_app, token, gateway.close_session))
    return app


def run_server(settings: Settings, token: str | None = None) -> None:
    """Start the gateway and block until interrupted."""
    import uvicorn

    token = token or settings.access_token or get_access_token()
    app = create_app(settings, token=token)

    print("\n" + "=" * 50)
    print("DOMSHELL MCP SERVER")
    print("=" * 50)
    print(f"\nMCP endpoint:  http://{settings.host}:{settings.port}/mcp")
    print(f"Bridge:        ws://{settings.host}:{settings.port}/bridge")
    print(f"Auth token:    {token}")
    flags = [
        name
        for name, enabled in (
            ("write", settings.allow_write),
            ("sensitive", settings.allow_sensitive),
            ("no-confirm", settings.no_confirm),
            ("expose-cookies", settings.expose_cookies),
        )
        if enabled
    ]
    print(f"Enabled:       {', '.join(flags) or 'read-only'}")
    if settings.domain_list:
        print(f"Domains:       {', '.join(settings.domain_list)}")
    print()

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


__all__ = [
    "BearerAuthMiddleware",
    "build_command",
    "build_mcp",
    "create_app",
    "quote_arg",
    "run_server",
]
