"""Outbound executor: synchronous httpx client for the inspection views.

One ``httpx.Client`` is shared by all invocations (it is thread-safe);
each call gets its own request and streamed response.  Transport errors
are logged and re-raised unchanged -- callers decide how to surface them.
"""

from __future__ import annotations

import httpx

from src.outbound.instrumentation import inject_distributed_trace_headers
from src.outbound.request import OutboundRequest, decode_headers
from src.shared.utils import setup_logging

logger = setup_logging("outbound.client")


class OutboundClient:
    """Executes ``OutboundRequest`` objects over HTTP."""

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = False,
        instrument: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.instrument = instrument
        event_hooks = {"request": [inject_distributed_trace_headers]} if instrument else {}
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=follow_redirects,
            event_hooks=event_hooks,
            transport=transport,
        )

    def execute(self, request: OutboundRequest) -> httpx.Response:
        """Send *request* and return the response with its body still unread.

        On return, *request* holds the headers that were actually sent,
        including client defaults and anything the instrumentation added.
        The caller must read or close the response.
        """
        outgoing = self._client.build_request(
            request.method, request.url, headers=request.header_pairs(),
        )
        try:
            response = self._client.send(outgoing, stream=True)
        except httpx.TransportError as e:
            logger.warning(f"Outbound {request.method} {request.url} failed: {e!r}")
            raise

        sent_headers = decode_headers(response.request.headers)
        logger.info(
            f"Outbound {request.method} {request.url} -> {response.status_code} "
            f"({len(request)} headers before send, {len(sent_headers)} sent)"
        )
        request.set_headers(sent_headers)
        return response

    def close(self) -> None:
        self._client.close()
