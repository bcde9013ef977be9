"""Header inspection controller.

Two views make a GET to ``EXTERNAL_URL`` and show the request headers
before and after the call plus the response:

  external                 plain call; tracing headers come only from
                           the client instrumentation at send time
  external_custom_headers  the caller also copies tracing headers into
                           the request, three times each, before sending

The second view is a deliberate misuse of the tracing header API: the
wire ends up with several tracing headers carrying conflicting values
for a single trace.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from src.outbound.client import OutboundClient
from src.outbound.request import OutboundRequest, snapshot_headers
from src.shared.trace import DISTRIBUTED_TRACE_HEADER_NAMES, DistributedTraceHeaders, Transaction
from src.shared.types import HeaderSnapshot, PresentationRecord

EXTERNAL_URL = "https://example.com/"
EXTERNAL_VIEW = "external"

# Copies of each tracing header added by the custom-headers view.
DUPLICATE_HEADER_COUNT = 3


class HeaderSource(Protocol):
    def contains_header(self, name: str) -> bool: ...

    def get_header(self, name: str) -> str | None: ...


class Model:
    """View model: named attributes handed to the template."""

    def __init__(self) -> None:
        self.attributes: dict[str, Any] = {}

    def add_attribute(self, name: str, value: Any) -> Model:
        self.attributes[name] = value
        return self

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)


def duplicate_trace_headers(request: OutboundRequest, source: HeaderSource) -> None:
    """Append each tracing header present in *source* to *request* three times.

    Names are handled in the fixed order traceparent, tracestate, newrelic.
    A name missing from *source* is skipped; an empty value still counts
    as present.
    """
    for name in DISTRIBUTED_TRACE_HEADER_NAMES:
        if not source.contains_header(name):
            continue
        value = source.get_header(name) or ""
        for _ in range(DUPLICATE_HEADER_COUNT):
            request.add_header(name, value)


def read_response_body(response: httpx.Response) -> str:
    """Read the streamed body to the end and decode it as text."""
    return "".join(response.iter_text())


def assemble_presentation(
    url: str,
    request: OutboundRequest,
    response: httpx.Response,
    request_headers_pre: HeaderSnapshot,
) -> PresentationRecord:
    """Build the view record once the call has returned.

    Body read errors propagate and no record is built.  The response is
    closed either way.
    """
    try:
        body = read_response_body(response)
    finally:
        response.close()
    return PresentationRecord(
        external_url=url,
        request_headers_pre=request_headers_pre,
        request_headers_post=snapshot_headers(request),
        status_code=response.status_code,
        status_message=response.reason_phrase,
        response=response,
        response_body=body,
        response_headers=snapshot_headers(response.headers),
    )


class DtHeadersController:
    """Runs the two inspection views against a shared outbound client."""

    def __init__(self, client: OutboundClient, url: str = EXTERNAL_URL) -> None:
        self.client = client
        self.url = url

    def fetch(self, request: OutboundRequest) -> PresentationRecord:
        # Snapshot before execute(): instrumentation headers only exist after it.
        request_headers_pre = snapshot_headers(request)
        response = self.client.execute(request)
        return assemble_presentation(self.url, request, response, request_headers_pre)

    def fetch_external(self) -> PresentationRecord:
        return self.fetch(OutboundRequest(self.url))

    def fetch_external_custom_headers(self, transaction: Transaction) -> PresentationRecord:
        request = OutboundRequest(self.url)
        trace_headers = DistributedTraceHeaders()
        transaction.insert_distributed_trace_headers(trace_headers)
        duplicate_trace_headers(request, trace_headers)
        return self.fetch(request)

    def external(self, model: Model) -> str:
        """Plain outbound call. Returns the view name."""
        _add_view_attributes(model, self.fetch_external())
        return EXTERNAL_VIEW

    def external_custom_headers(self, model: Model, transaction: Transaction) -> str:
        """Outbound call with manually duplicated tracing headers. Returns the view name."""
        _add_view_attributes(model, self.fetch_external_custom_headers(transaction))
        return EXTERNAL_VIEW


def _add_view_attributes(model: Model, record: PresentationRecord) -> None:
    for name, value in record.view_attributes().items():
        model.add_attribute(name, value)
