"""Tests for configuration loading and the CLI commands."""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import yaml
from click.testing import CliRunner

from src.cli.config import _build_controller, _load_config
from src.cli.main import cli
from src.outbound.client import OutboundClient
from src.web.controller import EXTERNAL_URL, DtHeadersController

_ENV_VARS = [
    "DTHEADERS_HOST",
    "DTHEADERS_PORT",
    "DTHEADERS_HTTP_TIMEOUT",
    "DTHEADERS_TRACING_ENABLED",
    "DTHEADERS_ACCOUNT_ID",
    "DTHEADERS_APP_ID",
    "DTHEADERS_TRUSTED_ACCOUNT_KEY",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    def setup_method(self):
        self._tmpdir = tempfile.mkdtemp()
        self.config_path = Path(self._tmpdir) / "dtheaders.yaml"

    def teardown_method(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def test_defaults_when_file_missing(self):
        cfg = _load_config(self.config_path)
        assert cfg["server"] == {"host": "0.0.0.0", "port": 8080}
        assert cfg["http"]["timeout"] == 30
        assert cfg["tracing"]["enabled"] is True
        assert cfg["tracing"]["account_id"] == ""

    def test_file_merges_over_defaults(self):
        self.config_path.write_text(yaml.dump({
            "server": {"port": 9090},
            "tracing": {"account_id": "123"},
        }))
        cfg = _load_config(self.config_path)
        assert cfg["server"] == {"host": "0.0.0.0", "port": 9090}
        assert cfg["tracing"]["account_id"] == "123"
        assert cfg["tracing"]["enabled"] is True

    def test_env_overrides_file(self, monkeypatch):
        self.config_path.write_text(yaml.dump({"server": {"port": 9090}}))
        monkeypatch.setenv("DTHEADERS_PORT", "7000")
        monkeypatch.setenv("DTHEADERS_TRACING_ENABLED", "false")
        monkeypatch.setenv("DTHEADERS_ACCOUNT_ID", "42")
        monkeypatch.setenv("DTHEADERS_HTTP_TIMEOUT", "2.5")
        cfg = _load_config(self.config_path)
        assert cfg["server"]["port"] == 7000
        assert cfg["tracing"]["enabled"] is False
        assert cfg["tracing"]["account_id"] == "42"
        assert cfg["http"]["timeout"] == 2.5

    def test_empty_file(self):
        self.config_path.write_text("")
        assert _load_config(self.config_path)["server"]["port"] == 8080

    def test_section_with_all_keys_commented_out(self):
        self.config_path.write_text("server:\n  # host: 0.0.0.0\ntracing:\n  account_id: \"7\"\n")
        cfg = _load_config(self.config_path)
        assert cfg["server"] == {"host": "0.0.0.0", "port": 8080}
        assert cfg["tracing"]["account_id"] == "7"

    def test_non_mapping_top_level_raises(self):
        self.config_path.write_text("- server\n- http\n")
        with pytest.raises(ValueError, match="top level must be a mapping"):
            _load_config(self.config_path)

    def test_non_mapping_section_raises(self):
        self.config_path.write_text("server: 8080\n")
        with pytest.raises(ValueError, match="section 'server'"):
            _load_config(self.config_path)

    def test_bad_port_raises(self, monkeypatch):
        monkeypatch.setenv("DTHEADERS_PORT", "not-a-port")
        with pytest.raises(ValueError):
            _load_config(self.config_path)

    def test_defaults_not_mutated(self):
        self.config_path.write_text(yaml.dump({"server": {"port": 1}}))
        _load_config(self.config_path)
        assert _load_config(Path(self._tmpdir) / "missing.yaml")["server"]["port"] == 8080

    def test_build_controller(self):
        cfg = _load_config(self.config_path)
        cfg["tracing"]["enabled"] = False
        controller = _build_controller(cfg)
        try:
            assert controller.url == EXTERNAL_URL
            assert controller.client.instrument is False
        finally:
            controller.client.close()


def _mock_controller(handler) -> DtHeadersController:
    return DtHeadersController(OutboundClient(transport=httpx.MockTransport(handler)))


def _config() -> dict:
    return {
        "server": {"host": "127.0.0.1", "port": 8080},
        "http": {"timeout": 5, "follow_redirects": False},
        "tracing": {"enabled": True, "account_id": "1", "app_id": "2", "trusted_account_key": ""},
    }


class TestFetchCommand:
    def test_fetch_json(self):
        controller = _mock_controller(lambda r: httpx.Response(200, content=b"hello world"))
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("src.cli.main._build_controller", return_value=controller):
            result = CliRunner().invoke(cli, ["fetch", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["response_body"] == "hello world"
        assert data["request_headers_pre"] == []

    def test_fetch_custom_headers_json(self):
        controller = _mock_controller(lambda r: httpx.Response(200, content=b"ok"))
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("src.cli.main._build_controller", return_value=controller):
            result = CliRunner().invoke(cli, ["fetch", "--custom-headers", "--json"])
        assert result.exit_code == 0, result.output
        names = [name for name, _ in json.loads(result.stdout)["request_headers_pre"]]
        assert names == ["traceparent"] * 3 + ["tracestate"] * 3 + ["newrelic"] * 3

    def test_fetch_table_output(self):
        controller = _mock_controller(lambda r: httpx.Response(200, content=b"hello world"))
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("src.cli.main._build_controller", return_value=controller):
            result = CliRunner().invoke(cli, ["fetch"])
        assert result.exit_code == 0, result.output
        assert "Request headers before execute (0)" in result.stdout
        assert "traceparent" in result.stdout
        assert "hello world" in result.stdout

    def test_fetch_transport_error_exits_1(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        controller = _mock_controller(handler)
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("src.cli.main._build_controller", return_value=controller):
            result = CliRunner().invoke(cli, ["fetch"])
        assert result.exit_code == 1
        assert "Outbound request failed" in result.output
        assert controller.client._client.is_closed


class TestServeCommand:
    def test_serve_runs_uvicorn(self):
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(cli, ["serve", "--port", "9999"])
        assert result.exit_code == 0, result.output
        _, kwargs = mock_run.call_args
        assert kwargs == {"host": "127.0.0.1", "port": 9999}

    def test_serve_explicit_port_zero_and_empty_host(self):
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(cli, ["serve", "--port", "0", "--host", ""])
        assert result.exit_code == 0, result.output
        _, kwargs = mock_run.call_args
        assert kwargs == {"host": "", "port": 0}

    def test_serve_defaults_from_config(self):
        with patch("src.cli.main._load_config", return_value=_config()), \
             patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(cli, ["serve"])
        assert result.exit_code == 0, result.output
        _, kwargs = mock_run.call_args
        assert kwargs == {"host": "127.0.0.1", "port": 8080}
