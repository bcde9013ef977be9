"""Pydantic models for the header-inspection views.

These are the values handed from the controller to the renderer; all of
them are frozen once built.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict


class HeaderEntry(BaseModel):
    """A single header as stored: no case or whitespace normalization."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str

    def as_pair(self) -> tuple[str, str]:
        return (self.name, self.value)


HeaderSnapshot = tuple[HeaderEntry, ...]


class PresentationRecord(BaseModel):
    """Everything the ``external`` view shows about one outbound call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    external_url: str
    request_headers_pre: HeaderSnapshot
    request_headers_post: HeaderSnapshot
    status_code: int
    status_message: str
    response: httpx.Response
    response_body: str
    response_headers: HeaderSnapshot

    def view_attributes(self) -> dict[str, Any]:
        """Return the record as named view-model attributes."""
        return {name: getattr(self, name) for name in type(self).model_fields}

    def to_json(self) -> dict[str, Any]:
        """JSON-safe form: headers as ``[name, value]`` lists, no response object."""
        return {
            "external_url": self.external_url,
            "request_headers_pre": [list(h.as_pair()) for h in self.request_headers_pre],
            "request_headers_post": [list(h.as_pair()) for h in self.request_headers_post],
            "status_code": self.status_code,
            "status_message": self.status_message,
            "response_body": self.response_body,
            "response_headers": [list(h.as_pair()) for h in self.response_headers],
        }
