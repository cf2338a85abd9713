"""
Unit tests for the command-line interface: parsing, config layering and handlers.
"""

import argparse
import json
import pytest
from unittest.mock import AsyncMock, patch

from cascade_mirror.cli.main import build_config, create_main_parser, create_parent_parser, main
from cascade_mirror.cli.serve_cmd import port_list, serve_handler
from cascade_mirror.config import Configuration
from cascade_mirror.discovery import Endpoint
from cascade_mirror.exceptions import EndpointNotFoundError


def parse(*argv):
    return create_main_parser(create_parent_parser()).parse_args(list(argv))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """No rc file and no bridge env vars from the machine running the tests."""
    for name in ("CDP_PORTS", "CDP_HOST", "POLL_INTERVAL", "PORT", "BIND_HOST",
                 "CDP_TIMEOUT", "STATIC_DIR", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "missing-rc"


@pytest.mark.unit
class TestParsing:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            parse()

    def test_serve_flags(self):
        args = parse("serve", "--cdp-ports", "9000, 9222", "--port", "8080",
                     "--poll-interval", "1.5", "--bind-host", "127.0.0.1")
        assert args.cdp_ports == [9000, 9222]
        assert args.port == 8080
        assert args.poll_interval == 1.5
        assert args.bind_host == "127.0.0.1"
        assert args.func is serve_handler

    def test_port_list_rejects_garbage(self):
        with pytest.raises(argparse.ArgumentTypeError):
            port_list("abc,")

    def test_quiet_and_verbose_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse("serve", "--quiet", "--verbose")

    def test_watch_flags(self):
        args = parse("watch", "ws://host:3000/ws", "--max-attempts", "3", "--no-latency")
        assert args.url == "ws://host:3000/ws"
        assert args.max_attempts == 3
        assert args.latency is False
        assert args.ping_interval == 5.0


@pytest.mark.unit
class TestBuildConfig:
    def test_cli_overrides_env_and_file(self, tmp_path, monkeypatch):
        rc = tmp_path / "rc.json"
        rc.write_text(json.dumps({"port": 4000, "poll_interval": 5.0, "cdp_host": "10.0.0.1"}))
        monkeypatch.setenv("PORT", "5000")

        args = parse("serve", "--config", str(rc), "--port", "6000")
        config = build_config(args)

        assert config.port == 6000
        assert config.poll_interval == 5.0
        assert config.cdp_host == "10.0.0.1"

    def test_verbose_forces_debug(self, isolated_config):
        config = build_config(parse("serve", "--config", str(isolated_config), "--verbose"))
        assert config.log_level == "DEBUG"

    def test_defaults(self, isolated_config):
        config = build_config(parse("discover", "--config", str(isolated_config)))
        assert config.to_dict() == Configuration().to_dict()


@pytest.mark.unit
class TestHandlers:
    def test_serve_rejects_invalid_config(self, capsys):
        config = Configuration()
        config.poll_interval = 0
        args = argparse.Namespace(config=config)

        assert serve_handler(args) == 2
        assert "invalid configuration" in capsys.readouterr().err

    def test_serve_reports_startup_failure(self, isolated_config, capsys):
        error = EndpointNotFoundError("CDP not found. Is the host started with --remote-debugging-port?")
        with patch("cascade_mirror.cli.serve_cmd.MirrorApp.start", AsyncMock(side_effect=error)), \
                patch("cascade_mirror.cli.main.setup_logging"):
            code = main(["serve", "--config", str(isolated_config)])

        assert code == 1
        assert "CDP not found" in capsys.readouterr().err

    def test_discover_prints_endpoint(self, isolated_config, capsys):
        endpoint = Endpoint(port=9001, ws_url="ws://127.0.0.1:9001/devtools/page/W1")
        with patch(
            "cascade_mirror.cli.discover_cmd.EndpointResolver.find_endpoint",
            AsyncMock(return_value=endpoint),
        ), patch("cascade_mirror.cli.main.setup_logging"):
            code = main(["discover", "--config", str(isolated_config), "--cdp-ports", "9001"])

        assert code == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {
            "port": 9001,
            "address": "127.0.0.1:9001",
            "ws_url": "ws://127.0.0.1:9001/devtools/page/W1",
        }

    def test_discover_not_found(self, isolated_config, capsys):
        with patch(
            "cascade_mirror.cli.discover_cmd.EndpointResolver.find_endpoint",
            AsyncMock(side_effect=EndpointNotFoundError("CDP not found")),
        ), patch("cascade_mirror.cli.main.setup_logging"):
            code = main(["discover", "--config", str(isolated_config), "--format", "text"])

        assert code == 1
        assert "remote-debugging-port" in capsys.readouterr().err

    def test_watch_rejects_http_url(self, isolated_config, capsys):
        with patch("cascade_mirror.cli.main.setup_logging"):
            code = main(["watch", "http://host:3000/ws", "--config", str(isolated_config)])

        assert code == 2
        assert "Invalid WebSocket URL" in capsys.readouterr().err
