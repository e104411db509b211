from __future__ import annotations

import logging
import typing as tp
from types import TracebackType

import httpx

from etagproxy._exceptions import TransportError
from etagproxy._headers import Headers
from etagproxy._models import DEFAULT_FAILURE_STATUS, FetchFailure, FetchResult, Request, Response
from etagproxy._utils import build_url

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("etagproxy.fetcher")

__all__ = ("UpstreamFetcher", "DEFAULT_TIMEOUT")

DEFAULT_TIMEOUT = 30.0

# Connection-specific headers are never forwarded in either direction.
HOP_BY_HOP_HEADERS = (
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
)
# httpx computes these from the body it sends.
REQUEST_HEADERS_TO_DROP = HOP_BY_HOP_HEADERS + ("host", "content-length")
# httpx hands back the decoded body, so the original framing no longer applies.
RESPONSE_HEADERS_TO_DROP = HOP_BY_HOP_HEADERS + ("content-encoding", "content-length")


class UpstreamFetcher:
    """
    Sends requests to the single configured upstream.

    Every upstream status code is returned as a `Response`. Only transport
    errors (timeouts, refused connections, protocol errors) become a
    `FetchFailure`.

    :param protocol: Upstream scheme, `http` or `https`
    :type protocol: str
    :param host: Upstream host name
    :type host: str
    :param port: Upstream port, defaults to the scheme's default port
    :type port: tp.Optional[int], optional
    :param timeout: Hard timeout for a whole request in seconds, defaults to 30
    :type timeout: float, optional
    :param client: An httpx client to send requests with, defaults to None
    :type client: tp.Optional[httpx.AsyncClient], optional
    """

    def __init__(
        self,
        protocol: str,
        host: str,
        port: tp.Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: tp.Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.protocol = protocol
        self.host = host
        self.port = port
        self.timeout = timeout
        self._client = client if client is not None else httpx.AsyncClient(follow_redirects=False)

    def url_for(self, request: Request) -> str:
        return build_url(self.protocol, self.host, self.port, request.path)

    async def fetch(self, request: Request) -> FetchResult:
        try:
            return await self._send(request)
        except TransportError as exc:
            return FetchFailure(
                message=exc.message,
                status_code=exc.status_code if exc.status_code is not None else DEFAULT_FAILURE_STATUS,
            )

    async def _send(self, request: Request) -> Response:
        url = self.url_for(request)
        logger.info("Get URL %s %s", request.method, url)

        try:
            response = await self._client.request(
                request.method,
                url,
                headers=[
                    (key.encode("latin1"), value.encode("latin1"))
                    for key, value in request.headers.without(REQUEST_HEADERS_TO_DROP).multi_items()
                ],
                content=request.body or None,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Upstream request timed out after {self.timeout}s: {url}") from exc
        except httpx.RequestError as exc:
            raise TransportError(str(exc) or f"{type(exc).__name__} while requesting {url}") from exc

        logger.debug("Got response %d from %s", response.status_code, url)
        return _httpx_to_internal(response)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Self":
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None:
        await self.aclose()


def _httpx_to_internal(response: httpx.Response) -> Response:
    # Raw bytes decoded as latin-1 are relayed to the client byte for byte.
    headers = Headers.from_pairs(
        (key.decode("latin1"), value.decode("latin1")) for key, value in response.headers.raw
    ).without(RESPONSE_HEADERS_TO_DROP)
    return Response(
        status_code=response.status_code,
        headers=headers,
        body=response.content,
    )
