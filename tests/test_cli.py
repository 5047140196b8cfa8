# Tests for the domshell command-line entry point.
# Created: 2026-03-10

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from domshell.__main__ import apply_overrides, build_parser, main, run_bridge_mode
from domshell.config import Settings
from domshell.errors import Unauthorized


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestParser:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            parse()

    def test_serve_flags(self):
        args = parse("serve", "--allow-write", "--no-confirm", "-p", "9000", "--domains", "a.com,b.com")
        assert args.command == "serve"
        assert args.allow_write
        assert args.no_confirm
        assert args.port == 9000
        assert args.domains == "a.com,b.com"

    def test_bridge_headless(self):
        assert parse("bridge").headless is None
        assert parse("bridge", "--headless").headless is True
        assert parse("bridge", "--headed").headless is False

    def test_headless_and_headed_conflict(self):
        with pytest.raises(SystemExit):
            parse("bridge", "--headless", "--headed")


class TestOverrides:
    def test_defaults_untouched(self):
        settings = Settings()
        assert apply_overrides(settings, parse("serve")) == settings

    def test_allow_all(self):
        settings = apply_overrides(Settings(), parse("serve", "--allow-all"))
        assert settings.allow_write
        assert settings.allow_sensitive

    def test_serve_values(self):
        args = parse(
            "--log-level", "DEBUG", "serve", "--expose-cookies", "--host", "0.0.0.0",
            "--domains", "example.com", "--log-file", "/tmp/audit.jsonl", "--token", "tok",
        )
        settings = apply_overrides(Settings(), args)
        assert settings.log_level == "DEBUG"
        assert settings.expose_cookies
        assert settings.host == "0.0.0.0"
        assert settings.domain_list == ["example.com"]
        assert settings.audit_log_path == Path("/tmp/audit.jsonl")
        assert settings.access_token == "tok"

    def test_bridge_values(self):
        args = parse("bridge", "--url", "ws://h:1/bridge", "--cdp-url", "http://localhost:9222", "--headless")
        settings = apply_overrides(Settings(), args)
        assert settings.bridge_url == "ws://h:1/bridge"
        assert settings.cdp_url == "http://localhost:9222"
        assert settings.headless is True


class TestMain:
    def test_dispatches_serve(self):
        with (
            patch("sys.argv", ["domshell", "serve", "--allow-write"]),
            patch("domshell.__main__.get_settings", return_value=Settings()),
            patch("domshell.__main__.setup_logging"),
            patch("domshell.__main__.run_serve") as run_serve,
        ):
            main()
        settings = run_serve.call_args.args[0]
        assert settings.allow_write

    def test_dispatches_bridge(self):
        with (
            patch("sys.argv", ["domshell", "bridge"]),
            patch("domshell.__main__.get_settings", return_value=Settings()),
            patch("domshell.__main__.setup_logging"),
            patch("domshell.__main__.run_bridge_mode") as run_bridge,
        ):
            main()
        run_bridge.assert_called_once()

    def test_bad_bridge_token_exits(self):
        settings = Settings(access_token="tok")
        with patch(
            "domshell.bridge.client.run_bridge", AsyncMock(side_effect=Unauthorized("rejected"))
        ) as run_bridge:
            with pytest.raises(SystemExit) as exc:
                run_bridge_mode(settings)
        assert exc.value.code == 1
        assert run_bridge.call_args.args == (settings.bridge_url, "tok")
