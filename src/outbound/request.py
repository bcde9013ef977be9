"""Outbound request model and header snapshots.

``OutboundRequest`` keeps its headers as an ordered list of entries, not a
mapping: the same name may be added any number of times and every entry
is kept in insertion order.  Snapshots are tuples of frozen entries, so a
snapshot never changes when the request is mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx

from src.shared.types import HeaderEntry, HeaderSnapshot


class OutboundRequest:
    """A mutable outbound request owned by a single operation."""

    def __init__(self, url: str, method: str = "GET") -> None:
        self.url = url
        self.method = method
        self._headers: list[HeaderEntry] = []

    def add_header(self, name: str, value: str) -> None:
        """Append a header entry, even if one with this name already exists."""
        self._headers.append(HeaderEntry(name=name, value=value))

    def set_headers(self, headers: Iterable[tuple[str, str]]) -> None:
        """Replace all entries, keeping the given order."""
        self._headers = [HeaderEntry(name=name, value=value) for name, value in headers]

    def get_headers(self, name: str) -> list[str]:
        """Return every value stored under *name* (exact match), in order."""
        return [h.value for h in self._headers if h.name == name]

    def header_pairs(self) -> list[tuple[str, str]]:
        return [h.as_pair() for h in self._headers]

    def all_headers(self) -> HeaderSnapshot:
        return tuple(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"OutboundRequest({self.method} {self.url}, {len(self._headers)} headers)"


def decode_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Return httpx headers as they go on the wire: original name case, duplicates kept."""
    encoding = headers.encoding
    return [(name.decode(encoding), value.decode(encoding)) for name, value in headers.raw]


def snapshot_headers(source: OutboundRequest | httpx.Headers) -> HeaderSnapshot:
    """Capture the current headers of a request or response.

    The result has one entry per stored header, in stored order.
    """
    if isinstance(source, OutboundRequest):
        return source.all_headers()
    return tuple(HeaderEntry(name=name, value=value) for name, value in decode_headers(source))
