"""CLI entry point for dtheaders.

  serve                    Run the inspection web views
  fetch                    Run the plain outbound call once and print headers
  fetch --custom-headers   Same, with duplicated tracing headers
  fetch --json             Print the record as JSON
"""

from __future__ import annotations

import json
import sys

import click
import httpx

from src.cli import config as cli_config
from src.cli.config import _build_app, _build_controller, _load_config, _tracing_kwargs
from src.cli.formatting import display_record, echo_fail


# ── Main group ───────────────────────────────────────────────

@click.group()
def cli():
    """dtheaders -- inspect distributed-tracing headers on outbound calls."""
    from dotenv import load_dotenv

    load_dotenv(cli_config.ENV_FILE)


# ── serve ────────────────────────────────────────────────────

@cli.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", type=int, default=None, help="Port (default from config)")
def serve(host: str | None, port: int | None):
    """Serve /external and /external-custom-headers."""
    import uvicorn

    cfg = _load_config()
    host = host if host is not None else cfg["server"]["host"]
    port = port if port is not None else cfg["server"]["port"]
    app = _build_app(cfg)
    click.echo(f"Serving on http://{host}:{port}/external")
    uvicorn.run(app, host=host, port=port)


# ── fetch ────────────────────────────────────────────────────

@cli.command()
@click.option("--custom-headers", is_flag=True, help="Add tracing headers three times before sending")
@click.option("--json", "as_json", is_flag=True, help="Print the record as JSON")
def fetch(custom_headers: bool, as_json: bool):
    """Make the outbound call once and show request/response headers."""
    from src.shared.trace import Transaction

    cfg = _load_config()
    controller = _build_controller(cfg)
    try:
        with Transaction(**_tracing_kwargs(cfg)).activate() as txn:
            if custom_headers:
                record = controller.fetch_external_custom_headers(txn)
            else:
                record = controller.fetch_external()
    except httpx.HTTPError as e:
        echo_fail(f"Outbound request failed: {e}")
        sys.exit(1)
    finally:
        controller.client.close()

    if as_json:
        click.echo(json.dumps(record.to_json(), indent=2))
    else:
        display_record(record)


if __name__ == "__main__":
    cli()
