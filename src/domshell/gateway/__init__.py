# MCP gateway: bridge hub, policy pipeline and the HTTP application.
# Created: 2026-03-07

from domshell.gateway.hub import BridgeHub, PendingRemoteCommand
from domshell.gateway.gateway import ProtocolGateway
from domshell.gateway.server import create_app, run_server

__all__ = ["BridgeHub", "PendingRemoteCommand", "ProtocolGateway", "create_app", "run_server"]
