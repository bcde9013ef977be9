"""httpx instrumentation that injects distributed-tracing headers.

Installed as a ``request`` event hook on the outbound client, so it runs
after the caller hands over the request and before it is transmitted.
Headers from the active transaction are appended; anything the caller
already set under the same names stays in place, which is how duplicate
and conflicting tracing headers reach the wire.

On a redirect httpx copies the previous hop's headers and extensions into
the new request and runs the hook again.  The entries injected on the
earlier hop are recorded in ``request.extensions`` and removed before the
new hop's set is appended, so each hop carries exactly one injected set.
"""

from __future__ import annotations

import httpx

from src.shared.trace import current_transaction, distributed_trace_headers
from src.shared.utils import setup_logging

logger = setup_logging("outbound.instrumentation")

INJECTED_EXTENSION = "dtheaders.injected_headers"


def _without_injected(raw: list[tuple[bytes, bytes]], injected: list[tuple[bytes, bytes]]) -> list:
    """Drop one occurrence of each previously injected (name, value) pair."""
    remaining = list(injected)
    kept = []
    for pair in raw:
        if pair in remaining:
            remaining.remove(pair)
            continue
        kept.append(pair)
    return kept


def inject_distributed_trace_headers(request: httpx.Request) -> None:
    """httpx request hook: append the active transaction's tracing headers."""
    raw = list(request.headers.raw)
    previous = request.extensions.get(INJECTED_EXTENSION)
    if previous:
        raw = _without_injected(raw, previous)

    injected = []
    if current_transaction.get() is not None:
        injected = [(k.encode("ascii"), v.encode("ascii")) for k, v in distributed_trace_headers().items()]

    if not previous and not injected:
        return
    request.headers = httpx.Headers(raw + injected)
    request.extensions[INJECTED_EXTENSION] = injected
    if injected:
        logger.debug(
            f"Injected {len(injected)} tracing headers into {request.method} {request.url}"
        )
