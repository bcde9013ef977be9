"""Configuration loading and component wiring."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path

import yaml

logger = logging.getLogger("cli")

# ── Path constants ──────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"
CONFIG_FILE = PROJECT_ROOT / "config" / "dtheaders.yaml"

# ── Defaults ────────────────────────────────────────────────

_DEFAULTS: dict = {
    "server": {"host": "0.0.0.0", "port": 8080},
    "http": {"timeout": 30, "follow_redirects": False},
    "tracing": {
        "enabled": True,
        "account_id": "",
        "app_id": "",
        "trusted_account_key": "",
    },
}

# (section, key, env var, converter)
_ENV_OVERRIDES = [
    ("server", "host", "DTHEADERS_HOST", str),
    ("server", "port", "DTHEADERS_PORT", int),
    ("http", "timeout", "DTHEADERS_HTTP_TIMEOUT", float),
    ("tracing", "enabled", "DTHEADERS_TRACING_ENABLED", None),
    ("tracing", "account_id", "DTHEADERS_ACCOUNT_ID", str),
    ("tracing", "app_id", "DTHEADERS_APP_ID", str),
    ("tracing", "trusted_account_key", "DTHEADERS_TRUSTED_ACCOUNT_KEY", str),
]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Config loading ──────────────────────────────────────────


def _load_config(config_path: Path | None = None) -> dict:
    """Load config: defaults, then the YAML file, then DTHEADERS_* env vars."""
    path = config_path or CONFIG_FILE
    cfg = copy.deepcopy(_DEFAULTS)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
        for section, values in data.items():
            if not isinstance(cfg.get(section), dict):
                cfg[section] = values
                continue
            # A section with every key commented out parses as None
            values = values or {}
            if not isinstance(values, dict):
                raise ValueError(f"{path}: section '{section}' must be a mapping")
            cfg[section].update(values)

    for section, key, env_var, convert in _ENV_OVERRIDES:
        raw = os.environ.get(env_var)
        if raw is None or raw == "":
            continue
        cfg[section][key] = _parse_bool(raw) if convert is None else convert(raw)

    cfg["server"]["port"] = int(cfg["server"]["port"])
    return cfg


# ── Wiring ──────────────────────────────────────────────────


def _build_controller(cfg: dict, transport=None):
    """Create the inspection controller with an outbound client from *cfg*."""
    from src.outbound.client import OutboundClient
    from src.web.controller import DtHeadersController

    http_cfg = cfg["http"]
    client = OutboundClient(
        timeout=float(http_cfg["timeout"]),
        follow_redirects=bool(http_cfg["follow_redirects"]),
        instrument=bool(cfg["tracing"]["enabled"]),
        transport=transport,
    )
    return DtHeadersController(client)


def _build_app(cfg: dict, transport=None):
    from src.web.server import create_app

    return create_app(_build_controller(cfg, transport=transport), tracing=_tracing_kwargs(cfg))


def _tracing_kwargs(cfg: dict) -> dict:
    tracing = cfg["tracing"]
    return {
        "account_id": str(tracing["account_id"]),
        "app_id": str(tracing["app_id"]),
        "trusted_account_key": str(tracing["trusted_account_key"]),
    }
