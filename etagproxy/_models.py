from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, TypedDict, Union

from etagproxy._headers import Headers

__all__ = (
    "Request",
    "Response",
    "ResponseMetadata",
    "Entry",
    "FetchFailure",
    "FetchResult",
    "DEFAULT_FAILURE_STATUS",
)

DEFAULT_FAILURE_STATUS = 503


@dataclass
class Request:
    method: str
    host: str
    path: str
    """Original request path including the query string."""
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""

    @property
    def cache_key(self) -> str:
        return f"{self.host}{self.path}"


class ResponseMetadata(TypedDict, total=False):
    from_cache: bool
    """Indicates whether the response was served from cache."""

    not_modified: bool
    """Indicates whether the response is a synthetic 304 produced from a stored etag."""

    stored: bool
    """Indicates whether the response was stored in cache."""

    bypassed: bool
    """Indicates whether the request path matched an ignore pattern."""

    created_at: float
    """Timestamp when the underlying entry was captured."""


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def etag(self) -> str:
        return self.headers.get("etag", "")


@dataclass(frozen=True)
class Entry:
    """
    A captured upstream response.

    Entries are never mutated. A refresh stores a new entry under the same key.
    """

    host: str
    original_path: str
    status_code: int
    etag: str
    headers: Headers
    body: bytes
    captured_at: float = field(default_factory=time.time)

    @property
    def cache_key(self) -> str:
        return f"{self.host}{self.original_path}"

    def to_response(self, metadata: ResponseMetadata | None = None) -> Response:
        return Response(
            status_code=self.status_code,
            headers=self.headers.copy(),
            body=self.body,
            metadata=metadata if metadata is not None else {},
        )


@dataclass(frozen=True)
class FetchFailure:
    """
    Transport-level failure while talking to the upstream.

    Legitimate non-2xx upstream statuses are responses, not failures.
    """

    message: str
    status_code: int = DEFAULT_FAILURE_STATUS

    def to_response(self) -> Response:
        body = json.dumps({"status": "error", "message": self.message}).encode("utf-8")
        return Response(
            status_code=self.status_code,
            headers=Headers({"content-type": "application/json"}),
            body=body,
        )


FetchResult = Union[Response, FetchFailure]
