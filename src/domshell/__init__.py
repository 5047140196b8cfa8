"""DOMShell - browse a live web page as a filesystem, over MCP."""

__version__ = "0.3.0"
