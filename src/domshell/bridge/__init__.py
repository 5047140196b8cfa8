# Kernel host side of the bridge.
# Created: 2026-03-08

from domshell.bridge.client import BridgeClient, KernelHost, run_bridge

__all__ = ["BridgeClient", "KernelHost", "run_bridge"]
