"""Display helpers: styled output and header tables for the terminal."""

from __future__ import annotations

import click

from src.shared.types import HeaderSnapshot, PresentationRecord
from src.shared.utils import truncate

# ── Styled output helpers ───────────────────────────────────


def echo_header(text: str) -> None:
    """Section header."""
    click.echo(click.style(f"\n  {text}", bold=True))


def echo_ok(text: str) -> None:
    """Success status line."""
    click.echo(click.style("  ✓ ", fg="green") + text)


def echo_fail(text: str) -> None:
    """Error."""
    click.echo(click.style("  ✗ ", fg="red") + text, err=True)


def echo_dim(text: str) -> None:
    """Dim/secondary info."""
    click.echo(click.style(f"  {text}", fg="bright_black"))


# ── Record display ──────────────────────────────────────────


def display_headers(title: str, headers: HeaderSnapshot) -> None:
    """Print a header snapshot as an aligned name/value list."""
    echo_header(f"{title} ({len(headers)})")
    if not headers:
        echo_dim("(none)")
        return
    width = max(len(h.name) for h in headers)
    for h in headers:
        name = click.style(h.name.ljust(width), fg="cyan")
        click.echo(f"    {name}  {h.value}")


def display_record(record: PresentationRecord, body_chars: int = 500) -> None:
    """Print everything the ``external`` view shows."""
    echo_ok(f"GET {record.external_url} -> {record.status_code} {record.status_message}")
    display_headers("Request headers before execute", record.request_headers_pre)
    display_headers("Request headers after execute", record.request_headers_post)
    display_headers("Response headers", record.response_headers)
    echo_header(f"Response body ({len(record.response_body)} chars)")
    click.echo(truncate(record.response_body, body_chars))
