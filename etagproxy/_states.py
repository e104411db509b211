from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from etagproxy._headers import is_storable_etag
from etagproxy._models import Entry, FetchFailure, FetchResult, Request, Response, ResponseMetadata
from etagproxy._storage import is_expired

logger = logging.getLogger("etagproxy.states")

# Request headers a client may use to present the etag it already holds.
CLIENT_ETAG_HEADERS = ("etag", "if-none-match")
# Never persisted nor relayed from a captured upstream response.
STRIPPED_RESPONSE_HEADERS = ("set-cookie",)
DEFAULT_STATUS_CODE = 200


@dataclass
class CacheOptions:
    """
    Options controlling how long captured responses stay valid.

    Attributes:
    ----------
    lifetime : float
        Maximum age, in seconds, after which a stored entry is treated as a
        miss. An entry whose age equals the lifetime is already expired.

        Examples:
        --------
        >>> options = CacheOptions(lifetime=300)
        >>> options.lifetime
        300
    """

    lifetime: float


@dataclass
class State(ABC):
    options: CacheOptions

    @abstractmethod
    def next(self, *args: Any, **kwargs: Any) -> Union["State", None]:
        raise NotImplementedError("Subclasses must implement this method")


def client_etags(request: Request) -> List[str]:
    values: List[str] = []
    for name in CLIENT_ETAG_HEADERS:
        values.extend(value for value in request.headers.get_list(name) or [] if value)
    return values


class IdleClient(State):
    """
    Entry point of the decision state machine for a cacheable request.

    State Transitions:
    -----------------
    - CacheMiss: nothing stored for the key, or a forced refresh over a fresh entry
    - InvalidateEntries: the stored entry has expired; it is removed, then CacheMiss
    - NotModified: the client presented the stored etag
    - FromCache: a fresh entry can be served as is

    Attributes:
    ----------
    force_refresh : bool
        Bypass a fresh hit and always go upstream. Etag persistence rules still apply.
    """

    def __init__(self, options: CacheOptions, force_refresh: bool = False) -> None:
        super().__init__(options)
        self.force_refresh = force_refresh

    def next(
        self, request: Request, entry: Optional[Entry], now: Optional[float] = None
    ) -> Union["CacheMiss", "FromCache", "NotModified", "InvalidateEntries"]:
        now = time.time() if now is None else now

        if entry is None:
            logger.debug("Cache miss for %s", request.cache_key)
            return CacheMiss(request=request, options=self.options)

        if is_expired(entry, now, self.options.lifetime):
            logger.debug("Entry for %s has expired", request.cache_key)
            return InvalidateEntries(
                options=self.options,
                keys=[entry.cache_key],
                next_state=CacheMiss(request=request, options=self.options),
            )

        if entry.etag in client_etags(request):
            logger.debug("Etag hit for %s", request.cache_key)
            return NotModified(entry=entry, options=self.options)

        if not self.force_refresh:
            logger.debug("Etag miss, serving cached entry for %s", request.cache_key)
            return FromCache(entry=entry, options=self.options)

        logger.debug("Forced refresh for %s", request.cache_key)
        return CacheMiss(request=request, options=self.options, refresh=True)


class CacheMiss(State):
    """
    The request has to be sent upstream.

    Attributes:
    ----------
    request : Request
        The request to forward.
    refresh : bool
        True when a fresh entry exists but a refresh was forced.
    """

    def __init__(self, request: Request, options: CacheOptions, refresh: bool = False) -> None:
        super().__init__(options)
        self.request = request
        self.refresh = refresh

    def next(self, result: FetchResult) -> Union["StoreAndUse", "CouldNotBeStored", "FetchFailed"]:
        if isinstance(result, FetchFailure):
            return FetchFailed(failure=result, options=self.options)

        entry = capture_entry(self.request, result)
        logger.debug("Got response %d for %s", entry.status_code, entry.cache_key)

        if is_storable_etag(entry.etag):
            return StoreAndUse(entry=entry, options=self.options)
        return CouldNotBeStored(entry=entry, options=self.options)


def capture_entry(request: Request, response: Response, now: Optional[float] = None) -> Entry:
    headers = response.headers.without(STRIPPED_RESPONSE_HEADERS)
    return Entry(
        host=request.host,
        original_path=request.path,
        status_code=response.status_code or DEFAULT_STATUS_CODE,
        etag=headers.get("etag", ""),
        headers=headers,
        body=response.body,
        captured_at=time.time() if now is None else now,
    )


class StoreAndUse(State):
    """
    The captured entry carries a strong etag; store it and return it.
    """

    def __init__(self, entry: Entry, options: CacheOptions) -> None:
        super().__init__(options)
        self.entry = entry
        self.response = entry.to_response(
            ResponseMetadata(
                from_cache=False,
                not_modified=False,
                stored=True,
                created_at=entry.captured_at,
            )
        )

    def next(self) -> None:
        return None


class CouldNotBeStored(State):
    """
    The captured entry has no etag or a weak one; it is used for this request only.
    """

    def __init__(self, entry: Entry, options: CacheOptions) -> None:
        super().__init__(options)
        self.entry = entry
        self.response = entry.to_response(
            ResponseMetadata(
                from_cache=False,
                not_modified=False,
                stored=False,
                created_at=entry.captured_at,
            )
        )

    def next(self) -> None:
        return None


class FromCache(State):
    def __init__(self, entry: Entry, options: CacheOptions) -> None:
        super().__init__(options)
        self.entry = entry
        self.response = entry.to_response(
            ResponseMetadata(
                from_cache=True,
                not_modified=False,
                stored=False,
                created_at=entry.captured_at,
            )
        )

    def next(self) -> None:
        return None


class NotModified(State):
    """
    Synthetic 304 built from a stored entry: its headers, an empty body.
    """

    def __init__(self, entry: Entry, options: CacheOptions) -> None:
        super().__init__(options)
        self.entry = entry
        self.response = Response(
            status_code=304,
            headers=entry.headers.copy(),
            body=b"",
            metadata=ResponseMetadata(
                from_cache=True,
                not_modified=True,
                stored=False,
                created_at=entry.captured_at,
            ),
        )

    def next(self) -> None:
        return None


@dataclass
class InvalidateEntries(State):
    """
    The state that represents the deletion of cache entries.
    """

    keys: list[str]

    next_state: AnyState

    def next(self) -> AnyState:
        return self.next_state


@dataclass
class FetchFailed(State):
    failure: FetchFailure

    def next(self) -> None:
        return None


AnyState = Union[
    IdleClient,
    CacheMiss,
    StoreAndUse,
    CouldNotBeStored,
    FromCache,
    NotModified,
    InvalidateEntries,
    FetchFailed,
]
