"""DOMShell entry point.

Changes:
  - 2026-03-08: serve and bridge subcommands.
  - 2026-03-10: --allow-all, --domains and --token.
"""

import argparse
import asyncio
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

from domshell.config import Settings, get_access_token, get_settings
from domshell.errors import Unauthorized
from domshell.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return get_version("domshell")
    except PackageNotFoundError:
        from domshell import __version__

        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="domshell",
        description="DOMShell - browse a live web page as a filesystem, over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  domshell serve                          Read-only MCP server on port 9876
  domshell serve --allow-write            Also allow navigate/open/click/focus/type
  domshell serve --allow-all --no-confirm Everything, without terminal prompts
  domshell bridge --cdp-url http://localhost:9222
                                          Drive a running Chrome for the server
""",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {_package_version()}")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the MCP gateway")
    serve.add_argument("--allow-write", action="store_true", help="Enable navigate/open and click/focus/type")
    serve.add_argument("--allow-sensitive", action="store_true", help="Enable whoami (cookies)")
    serve.add_argument("--allow-all", action="store_true", help="--allow-write plus --allow-sensitive")
    serve.add_argument("--no-confirm", action="store_true", help="Do not ask on the terminal before writes")
    serve.add_argument("--expose-cookies", action="store_true", help="Do not redact cookie values")
    serve.add_argument("--host", default=None, help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port for /mcp and /bridge (default: 9876)")
    serve.add_argument("--domains", default=None, help="Comma-separated allowed domains")
    serve.add_argument("--log-file", type=Path, default=None, help="Audit log path")
    serve.add_argument("--token", default=None, help="Bearer token (default: ~/.domshell/access_token)")

    bridge = sub.add_parser("bridge", help="Run the kernel host next to the browser")
    bridge.add_argument("--url", default=None, help="Gateway bridge URL (default: ws://127.0.0.1:9876/bridge)")
    bridge.add_argument("--token", default=None, help="Bearer token shared with the gateway")
    bridge.add_argument("--cdp-url", default=None, help="Connect to a running Chrome instead of launching one")
    headless = bridge.add_mutually_exclusive_group()
    headless.add_argument("--headless", dest="headless", action="store_true", default=None)
    headless.add_argument("--headed", dest="headless", action="store_false")

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags win over env and config file values."""
    updates: dict = {}
    if args.log_level:
        updates["log_level"] = args.log_level

    if args.command == "serve":
        if args.allow_write or args.allow_all:
            updates["allow_write"] = True
        if args.allow_sensitive or args.allow_all:
            updates["allow_sensitive"] = True
        if args.no_confirm:
            updates["no_confirm"] = True
        if args.expose_cookies:
            updates["expose_cookies"] = True
        if args.host:
            updates["host"] = args.host
        if args.port:
            updates["port"] = args.port
        if args.domains is not None:
            updates["allowed_domains"] = args.domains
        if args.log_file:
            updates["audit_log_path"] = args.log_file
    else:
        if args.url:
            updates["bridge_url"] = args.url
        if args.cdp_url:
            updates["cdp_url"] = args.cdp_url
        if args.headless is not None:
            updates["headless"] = args.headless

    if args.token:
        updates["access_token"] = args.token
    return settings.model_copy(update=updates)


def run_serve(settings: Settings) -> None:
    from domshell.gateway.server import run_server

    run_server(settings)


def run_bridge_mode(settings: Settings) -> None:
    from domshell.bridge.client import run_bridge

    token = settings.access_token or get_access_token()
    logger.info("Starting kernel host for %s", settings.bridge_url)
    try:
        asyncio.run(
            run_bridge(
                settings.bridge_url,
                token,
                cdp_url=settings.cdp_url,
                headless=settings.headless,
                navigation_timeout=settings.navigation_timeout,
                initial_delay=settings.reconnect_initial_delay,
                max_delay=settings.reconnect_max_delay,
            )
        )
    except Unauthorized as e:
        logger.error("%s. Check --token or ~/.domshell/access_token.", e)
        raise SystemExit(1) from None


def main() -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = apply_overrides(get_settings(), args)
    setup_logging(level=settings.log_level)

    try:
        if args.command == "serve":
            run_serve(settings)
        else:
            run_bridge_mode(settings)
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
