"""Distributed tracing: transactions, header generation, contextvar propagation.

Every inbound web request runs inside a ``Transaction``.  A transaction
can continue an inbound W3C ``traceparent`` or start a fresh trace, and it
produces the three outbound distributed-tracing headers:

  - ``traceparent``  W3C trace context (always)
  - ``tracestate``   W3C vendor state, ``<trusted>@nr=...`` entry
  - ``newrelic``     base64 JSON payload

``tracestate`` and ``newrelic`` carry account identity, so they are only
produced when an account id is configured.

Separate module (not utils.py) to keep tracing concerns isolated and
avoid import cycles.
"""

from __future__ import annotations

import base64
import contextvars
import json
import random
import re
import threading
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"
NEWRELIC_HEADER = "newrelic"

# Checked in this order wherever tracing headers are copied.
DISTRIBUTED_TRACE_HEADER_NAMES = (TRACEPARENT_HEADER, TRACESTATE_HEADER, NEWRELIC_HEADER)

_TRACEPARENT_RE = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")

current_transaction: contextvars.ContextVar[Transaction | None] = contextvars.ContextVar(
    "current_transaction", default=None,
)


def new_trace_id() -> str:
    """Generate a W3C trace id: 32 lowercase hex chars."""
    return uuid.uuid4().hex


def new_span_id() -> str:
    """Generate a W3C span id: 16 lowercase hex chars."""
    return uuid.uuid4().hex[:16]


def parse_traceparent(value: str | None) -> tuple[str, str, bool] | None:
    """Parse a version-00 ``traceparent`` into (trace_id, parent_id, sampled).

    Returns None for anything malformed, including all-zero ids.
    """
    if not value:
        return None
    match = _TRACEPARENT_RE.match(value.strip())
    if not match:
        return None
    trace_id, parent_id, flags = match.groups()
    if trace_id == "0" * 32 or parent_id == "0" * 16:
        return None
    return trace_id, parent_id, bool(int(flags, 16) & 0x01)


class DistributedTraceHeaders:
    """Thread-safe header map that a transaction writes tracing headers into.

    Names are stored exactly as given; lookups are case-sensitive.
    """

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._headers: dict[str, str] = dict(headers or {})

    def contains_header(self, name: str) -> bool:
        with self._lock:
            return name in self._headers

    def get_header(self, name: str) -> str | None:
        with self._lock:
            return self._headers.get(name)

    def set_header(self, name: str, value: str) -> None:
        with self._lock:
            self._headers[name] = value

    def header_names(self) -> list[str]:
        with self._lock:
            return list(self._headers)

    def items(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._headers.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._headers)


class Transaction:
    """Trace context for one unit of work (one inbound web request)."""

    def __init__(
        self,
        account_id: str = "",
        app_id: str = "",
        trusted_account_key: str = "",
        trace_id: str | None = None,
        parent_id: str | None = None,
        sampled: bool = True,
        priority: float | None = None,
    ) -> None:
        self.id = new_span_id()
        self.account_id = account_id
        self.app_id = app_id
        self.trusted_account_key = trusted_account_key or account_id
        self.trace_id = trace_id or new_trace_id()
        self.parent_id = parent_id
        self.sampled = sampled
        if priority is None:
            priority = random.random() + (1.0 if sampled else 0.0)
        self.priority = round(priority, 6)

    @classmethod
    def from_inbound_headers(cls, headers: Mapping[str, str], **kwargs) -> Transaction:
        """Continue the trace in an inbound ``traceparent``, or start a new one."""
        parsed = parse_traceparent(headers.get(TRACEPARENT_HEADER))
        if parsed is None:
            return cls(**kwargs)
        trace_id, parent_id, sampled = parsed
        return cls(trace_id=trace_id, parent_id=parent_id, sampled=sampled, **kwargs)

    def insert_distributed_trace_headers(self, headers: DistributedTraceHeaders) -> None:
        """Generate outbound tracing headers for a new span and write them into *headers*."""
        span_id = new_span_id()
        timestamp = int(time.time() * 1000)
        flags = "01" if self.sampled else "00"
        headers.set_header(TRACEPARENT_HEADER, f"00-{self.trace_id}-{span_id}-{flags}")
        if not self.account_id:
            return

        sampled = 1 if self.sampled else 0
        headers.set_header(
            TRACESTATE_HEADER,
            f"{self.trusted_account_key}@nr=0-0-{self.account_id}-{self.app_id}-"
            f"{span_id}-{self.id}-{sampled}-{self.priority:.6f}-{timestamp}",
        )
        data = {
            "ty": "App",
            "ac": self.account_id,
            "ap": self.app_id,
            "id": span_id,
            "tx": self.id,
            "tr": self.trace_id,
            "pr": self.priority,
            "sa": self.sampled,
            "ti": timestamp,
        }
        if self.trusted_account_key != self.account_id:
            data["tk"] = self.trusted_account_key
        payload = json.dumps({"v": [0, 1], "d": data}, separators=(",", ":"))
        headers.set_header(NEWRELIC_HEADER, base64.b64encode(payload.encode()).decode("ascii"))

    @contextmanager
    def activate(self) -> Iterator[Transaction]:
        """Make this the current transaction for the enclosed block."""
        token = current_transaction.set(self)
        try:
            yield self
        finally:
            current_transaction.reset(token)


def decode_newrelic_payload(value: str) -> dict:
    """Decode a ``newrelic`` header value back into its JSON payload."""
    return json.loads(base64.b64decode(value))


def distributed_trace_headers() -> DistributedTraceHeaders:
    """Return tracing headers for the active transaction (empty if none)."""
    headers = DistributedTraceHeaders()
    txn = current_transaction.get()
    if txn is not None:
        txn.insert_distributed_trace_headers(headers)
    return headers
