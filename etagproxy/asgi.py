from __future__ import annotations

import logging
import typing as t

import anyio

from etagproxy._config import ProxyConfig
from etagproxy._fetcher import UpstreamFetcher
from etagproxy._headers import Headers
from etagproxy._ignore import IgnoreMatcher
from etagproxy._models import FetchFailure, Request, Response
from etagproxy._proxy import AsyncCacheProxy
from etagproxy._states import CacheOptions
from etagproxy._storage import InMemoryStorage
from etagproxy._sweeper import ExpirySweeper
from etagproxy._utils import is_truthy

logger = logging.getLogger("etagproxy.asgi")

__all__ = ("ASGICacheProxy", "create_app", "REFRESH_HEADER")

# A truthy value forces an upstream fetch even when a fresh entry exists.
REFRESH_HEADER = "x-cache-refresh"

# Bodies are not allowed on these statuses.
_NO_BODY_STATUSES = (204, 304)


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    raw_path: bytes
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]


class ASGICacheProxy:
    """
    ASGI application that serves the caching reverse proxy.

    Every HTTP request is converted to an internal `Request`, resolved by the
    cache proxy and written back. Transport failures are rendered as a JSON
    envelope `{"status": "error", "message": ...}`. The lifespan protocol
    starts the expiry sweeper and closes the upstream client on shutdown.

    Args:
        proxy: The decision engine.
        sweeper: Background expiry sweeper, run for the lifetime of the app.
        fetcher: Upstream fetcher, closed on shutdown.

    Example:
        ```python
        from etagproxy import load_config
        from etagproxy.asgi import create_app

        app = create_app(load_config("config/defaults.yml", "config/local.yml"))
        ```
    """

    def __init__(
        self,
        proxy: AsyncCacheProxy,
        sweeper: ExpirySweeper | None = None,
        fetcher: UpstreamFetcher | None = None,
    ) -> None:
        self.proxy = proxy
        self.sweeper = sweeper
        self.fetcher = fetcher

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            return

        request, force_refresh = await self._asgi_to_internal_request(scope, receive)
        logger.debug("Incoming HTTP request: method=%s path=%s", request.method, request.path)

        result = await self.proxy.handle_request(request, force_refresh=force_refresh)
        response = result.to_response() if isinstance(result, FetchFailure) else result

        logger.info(
            "Request processed: method=%s path=%s status=%d",
            request.method,
            request.path,
            response.status_code,
        )
        await self._send_internal_response(response, send)

    async def _handle_lifespan(self, receive: _Receive, send: _Send) -> None:
        message = await receive()
        if message["type"] != "lifespan.startup":
            return

        async with anyio.create_task_group() as tg:
            if self.sweeper is not None:
                tg.start_soon(self.sweeper.run)
            await send({"type": "lifespan.startup.complete"})

            while True:
                message = await receive()
                if message["type"] == "lifespan.shutdown":
                    break
            tg.cancel_scope.cancel()

        if self.fetcher is not None:
            await self.fetcher.aclose()
        await send({"type": "lifespan.shutdown.complete"})

    async def _asgi_to_internal_request(self, scope: _Scope, receive: _Receive) -> tuple[Request, bool]:
        """
        Convert an ASGI HTTP scope to an internal Request object.

        Returns:
            The internal Request object and whether a refresh was requested.
        """
        headers = Headers.from_pairs(
            (key.decode("latin1"), value.decode("latin1")) for key, value in scope.get("headers", [])
        )

        host = headers.get("host")
        if host is None:
            server = scope.get("server") or ("localhost", None)
            host = server[0] if server[1] is None else f"{server[0]}:{server[1]}"

        # `path` is percent-decoded by the server, `raw_path` is what the client sent.
        raw_path = scope.get("raw_path")
        path = raw_path.decode("latin1") if raw_path else scope.get("path", "/")
        query_string = scope.get("query_string", b"")
        if query_string:
            path = f"{path}?{query_string.decode('latin1')}"

        force_refresh = is_truthy(headers.get(REFRESH_HEADER))

        body_chunks: list[bytes] = []
        while True:
            message = await receive()
            if message["type"] == "http.request":
                body_chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    break
            elif message["type"] == "http.disconnect":
                logger.debug("Client disconnected during request body streaming")
                break

        request = Request(
            method=scope.get("method", "GET"),
            host=host,
            path=path,
            headers=headers.without([REFRESH_HEADER]),
            body=b"".join(body_chunks),
        )
        return request, force_refresh

    async def _send_internal_response(self, response: Response, send: _Send) -> None:
        body = b"" if response.status_code in _NO_BODY_STATUSES else response.body
        headers = [
            (key.encode("latin1"), value.encode("latin1"))
            for key, value in response.headers.without(["content-length"]).multi_items()
        ]
        if response.status_code not in _NO_BODY_STATUSES:
            headers.append((b"content-length", str(len(body)).encode("latin1")))

        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": headers,
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": body,
                "more_body": False,
            }
        )


def create_app(config: ProxyConfig) -> ASGICacheProxy:
    """
    Wire storage, fetcher, ignore patterns and sweeper from configuration.

    The same storage instance is shared by the proxy and the sweeper.
    """
    storage = InMemoryStorage()
    fetcher = UpstreamFetcher(
        protocol=config.remote.protocol,
        host=config.remote.host,
        port=config.remote.port,
        timeout=config.remote.timeout,
    )
    proxy = AsyncCacheProxy(
        request_sender=fetcher.fetch,
        options=CacheOptions(lifetime=config.cache.lifetime),
        storage=storage,
        ignore_matcher=IgnoreMatcher(config.ignore_urls),
    )
    sweeper = ExpirySweeper(storage, ttl=config.cache.lifetime, interval=config.cache.sweep_interval)

    logger.info(
        "Proxying to %s://%s%s with lifetime=%ss",
        config.remote.protocol,
        config.remote.host,
        f":{config.remote.port}" if config.remote.port is not None else "",
        config.cache.lifetime,
    )
    return ASGICacheProxy(proxy=proxy, sweeper=sweeper, fetcher=fetcher)
