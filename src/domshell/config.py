"""Configuration management for DOMShell.

Changes:
  - 2026-03-08: Security flags, allowed domains and bridge settings.
  - 2026-03-10: Access token can be overridden per run (--token / DOMSHELL_ACCESS_TOKEN).
"""

import json
import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9876


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path.home() / ".domshell"
    config_dir.mkdir(exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


def get_token_path() -> Path:
    """Get the access token file path."""
    return get_config_dir() / "access_token"


def parse_domains(raw: str) -> list[str]:
    """``"Example.com, .github.com,"`` -> ``["example.com", "github.com"]``."""
    return [d.strip().lower().strip(".") for d in raw.split(",") if d.strip().strip(".")]


class Settings(BaseSettings):
    """DOMShell settings with env and file support."""

    model_config = SettingsConfigDict(
        env_prefix="DOMSHELL_",
        env_file=".env",
        extra="ignore",
    )

    # Security tiers
    allow_write: bool = Field(default=False, description="Enable navigate/open and click/focus/type")
    allow_sensitive: bool = Field(default=False, description="Enable whoami (cookie inspection)")
    no_confirm: bool = Field(default=False, description="Skip terminal confirmation for write commands")
    expose_cookies: bool = Field(default=False, description="Return cookie values unredacted")
    allowed_domains: str = Field(
        default="", description="Comma-separated domains commands may touch (empty = any)"
    )

    # Server
    access_token: str | None = Field(
        default=None, description="Bearer token override (default: ~/.domshell/access_token)"
    )
    host: str = Field(default="127.0.0.1", description="MCP server host")
    port: int = Field(default=DEFAULT_PORT, description="MCP server and bridge port")
    audit_log_path: Path | None = Field(
        default=None, description="Audit log file (default: ~/.domshell/audit.jsonl)"
    )

    # Timeouts (seconds)
    command_timeout: float = Field(default=30.0, description="Bridge command timeout")
    confirm_timeout: float = Field(default=60.0, description="Write confirmation timeout")
    navigation_timeout: float = Field(default=15.0, description="Page load wait for navigate/open")

    # Bridge (kernel host)
    bridge_url: str = Field(
        default=f"ws://127.0.0.1:{DEFAULT_PORT}/bridge", description="Gateway bridge endpoint"
    )
    cdp_url: str | None = Field(
        default=None, description="Connect to a running Chrome (e.g. http://localhost:9222)"
    )
    headless: bool = Field(default=False, description="Launch Chromium headless when not using CDP")
    reconnect_initial_delay: float = Field(default=1.0, description="First reconnect delay")
    reconnect_max_delay: float = Field(default=30.0, description="Reconnect delay ceiling")

    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")

    @property
    def domain_list(self) -> list[str]:
        return parse_domains(self.allowed_domains)

    @property
    def is_allow_all(self) -> bool:
        return self.allow_write and self.allow_sensitive

    def save(self) -> None:
        """Save settings to config file.

        The access token is never written here; it lives in its own file.
        """
        data = self.model_dump(mode="json", exclude={"access_token"})
        get_config_path().write_text(json.dumps(data, indent=2))

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from config file, falling back to env/defaults."""
        config_path = get_config_path()
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text())
                return cls(**data)
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("Ignoring unreadable %s: %s", config_path, e)
        return cls()


@lru_cache
def get_settings(force_reload: bool = False) -> Settings:
    """Get cached settings instance."""
    if force_reload:
        get_settings.cache_clear()
    return Settings.load()


def get_access_token() -> str:
    """
    Get the current access token.
    If it doesn't exist, generate a new one.
    """
    token_path = get_token_path()
    if token_path.exists():
        token = token_path.read_text().strip()
        if token:
            return token

    return regenerate_token()


def regenerate_token() -> str:
    """
    Generate a new secure access token and save it.
    Invalidates previous tokens.
    """
    token = secrets.token_urlsafe(32)
    token_path = get_token_path()
    token_path.write_text(token)
    token_path.chmod(0o600)
    return token
