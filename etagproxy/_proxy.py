from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from typing_extensions import assert_never

from etagproxy._ignore import IgnoreMatcher
from etagproxy._models import FetchFailure, FetchResult, Request, Response, ResponseMetadata
from etagproxy._states import (
    AnyState,
    CacheMiss,
    CacheOptions,
    CouldNotBeStored,
    FetchFailed,
    FromCache,
    IdleClient,
    InvalidateEntries,
    NotModified,
    StoreAndUse,
)
from etagproxy._storage import InMemoryStorage

logger = logging.getLogger("etagproxy.proxy")

__all__ = ("AsyncCacheProxy",)


class AsyncCacheProxy:
    """
    The caching decision engine.

    It works only with internal models and delegates upstream calls to a
    user-provided callable, so it does not depend on any HTTP library. The
    callable must return a `FetchFailure` for transport errors instead of
    raising.

    Args:
        request_sender: Callable that sends a request upstream.
        options: Cache lifetime options.
        storage: Entry table. Defaults to a fresh InMemoryStorage.
        ignore_matcher: Paths that bypass the cache. Defaults to no patterns.
    """

    def __init__(
        self,
        request_sender: Callable[[Request], Awaitable[FetchResult]],
        options: CacheOptions,
        storage: Optional[InMemoryStorage] = None,
        ignore_matcher: Optional[IgnoreMatcher] = None,
    ) -> None:
        self.send_request = request_sender
        self.options = options
        self.storage = storage if storage is not None else InMemoryStorage()
        self.ignore_matcher = ignore_matcher if ignore_matcher is not None else IgnoreMatcher()

    async def handle_request(self, request: Request, force_refresh: bool = False) -> FetchResult:
        if self.ignore_matcher.should_ignore(request.path):
            return await self._handle_bypass(request)

        state: AnyState = IdleClient(options=self.options, force_refresh=force_refresh)

        while state:
            logger.debug(f"Handling state: {state.__class__.__name__}")
            if isinstance(state, IdleClient):
                state = self._handle_idle_state(state, request)
            elif isinstance(state, CacheMiss):
                state = await self._handle_cache_miss(state)
            elif isinstance(state, StoreAndUse):
                return self._handle_store_and_use(state)
            elif isinstance(state, CouldNotBeStored):
                logger.debug("Response has no strong etag, not storing")
                return state.response
            elif isinstance(state, (FromCache, NotModified)):
                return state.response
            elif isinstance(state, InvalidateEntries):
                state = self._handle_invalidate_entries(state)
            elif isinstance(state, FetchFailed):
                logger.warning("Upstream request failed: %s", state.failure.message)
                return state.failure
            else:
                assert_never(state)

        raise RuntimeError("Unreachable")

    async def _handle_bypass(self, request: Request) -> FetchResult:
        result = await self.send_request(request)
        if isinstance(result, FetchFailure):
            logger.warning("Upstream request failed: %s", result.message)
            return result
        result.metadata.update(ResponseMetadata(bypassed=True, from_cache=False, stored=False))  # type: ignore
        return result

    def _handle_idle_state(self, state: IdleClient, request: Request) -> AnyState:
        return state.next(request, self.storage.get(request.cache_key))

    async def _handle_cache_miss(self, state: CacheMiss) -> AnyState:
        result = await self.send_request(state.request)
        return state.next(result)

    def _handle_store_and_use(self, state: StoreAndUse) -> Response:
        self.storage.put(state.entry.cache_key, state.entry)
        return state.response

    def _handle_invalidate_entries(self, state: InvalidateEntries) -> AnyState:
        for key in state.keys:
            self.storage.delete(key)
        return state.next()
