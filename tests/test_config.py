"""Tests for Settings persistence and the access token file."""

import json
import stat
from pathlib import Path

import pytest

from domshell import config
from domshell.config import (
    Settings,
    get_access_token,
    get_config_dir,
    get_settings,
    parse_domains,
    regenerate_token,
)


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestParseDomains:
    def test_normalizes(self):
        assert parse_domains("Example.com, .github.com,") == ["example.com", "github.com"]

    def test_empty(self):
        assert parse_domains("") == []
        assert parse_domains(" , ") == []


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.port == 9876
        assert settings.host == "127.0.0.1"
        assert not settings.allow_write
        assert settings.command_timeout == 30
        assert settings.confirm_timeout == 60
        assert settings.navigation_timeout == 15
        assert settings.bridge_url == "ws://127.0.0.1:9876/bridge"
        assert settings.domain_list == []

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DOMSHELL_ALLOW_WRITE", "true")
        monkeypatch.setenv("DOMSHELL_PORT", "9999")
        settings = Settings()
        assert settings.allow_write
        assert settings.port == 9999

    def test_is_allow_all(self):
        assert Settings(allow_write=True, allow_sensitive=True).is_allow_all
        assert not Settings(allow_write=True).is_allow_all

    def test_config_dir_created(self, home):
        assert get_config_dir() == home / ".domshell"
        assert (home / ".domshell").is_dir()

    def test_save_and_load(self, home):
        Settings(allow_sensitive=True, allowed_domains="example.com", access_token="secret").save()
        data = json.loads((home / ".domshell" / "config.json").read_text())
        assert data["allow_sensitive"] is True
        assert "access_token" not in data

        loaded = Settings.load()
        assert loaded.allow_sensitive
        assert loaded.domain_list == ["example.com"]
        assert loaded.access_token is None

    def test_load_ignores_bad_file(self, home):
        get_config_dir()
        (home / ".domshell" / "config.json").write_text("{not json")
        assert Settings.load().port == 9876

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
        first = get_settings()
        get_settings.cache_clear()
        assert get_settings() is not first


class TestAccessToken:
    def test_generated_once(self, home):
        token = get_access_token()
        assert len(token) >= 32
        assert get_access_token() == token
        assert (home / ".domshell" / "access_token").read_text() == token

    def test_file_is_private(self, home):
        get_access_token()
        mode = (home / ".domshell" / "access_token").stat().st_mode
        assert stat.S_IMODE(mode) == 0o600

    def test_regenerate_invalidates(self):
        old = get_access_token()
        new = regenerate_token()
        assert new != old
        assert get_access_token() == new

    def test_empty_file_regenerates(self, home):
        get_config_dir()
        config.get_token_path().write_text("  \n")
        assert get_access_token().strip()
