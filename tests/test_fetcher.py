from __future__ import annotations

import typing as tp

import httpx
import pytest

from etagproxy import FetchFailure, Headers, Request, Response, UpstreamFetcher


def make_fetcher(handler: tp.Callable[[httpx.Request], httpx.Response], **kwargs: tp.Any) -> UpstreamFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("port", 8080)
    return UpstreamFetcher(protocol="http", host="upstream", client=client, **kwargs)


@pytest.mark.anyio
async def test_request_is_forwarded_to_the_upstream() -> None:
    received: tp.List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, headers={"etag": '"v1"'}, content=b"hello")

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(
            Request(
                method="GET",
                host="proxy.local",
                path="/page?q=1",
                headers=Headers(
                    {
                        "Host": "proxy.local",
                        "Accept": "text/html",
                        "Connection": "keep-alive",
                        "X-Custom": "1",
                    }
                ),
            )
        )

    assert isinstance(result, Response)
    assert result.status_code == 200
    assert result.body == b"hello"
    assert result.etag == '"v1"'

    [upstream_request] = received
    assert str(upstream_request.url) == "http://upstream:8080/page?q=1"
    assert upstream_request.method == "GET"
    assert upstream_request.headers["host"] == "upstream:8080"
    assert upstream_request.headers["accept"] == "text/html"
    assert upstream_request.headers["x-custom"] == "1"


@pytest.mark.anyio
async def test_request_body_is_forwarded() -> None:
    received: tp.List[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request.content)
        return httpx.Response(201)

    async with make_fetcher(handler, port=None) as fetcher:
        assert fetcher.url_for(Request("POST", "proxy.local", "/items")) == "http://upstream/items"
        result = await fetcher.fetch(Request("POST", "proxy.local", "/items", body=b'{"a": 1}'))

    assert isinstance(result, Response)
    assert result.status_code == 201
    assert received == [b'{"a": 1}']


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [301, 404, 500, 503])
async def test_non_2xx_statuses_are_responses(status_code: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=b"upstream says no")

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(Request("GET", "proxy.local", "/"))

    assert isinstance(result, Response)
    assert result.status_code == status_code
    assert result.body == b"upstream says no"


@pytest.mark.anyio
async def test_response_headers_are_relayed_without_framing_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[
                ("etag", '"v1"'),
                ("set-cookie", "a=1"),
                ("set-cookie", "b=2"),
                ("connection", "close"),
            ],
            content=b"hello",
        )

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(Request("GET", "proxy.local", "/"))

    assert isinstance(result, Response)
    assert result.headers.get_list("set-cookie") == ["a=1", "b=2"]
    assert "content-length" not in result.headers
    assert "connection" not in result.headers


@pytest.mark.anyio
async def test_non_ascii_header_bytes_survive_both_directions() -> None:
    disposition = 'attachment; filename="€.txt"'.encode("utf-8")
    received: tp.List[tp.Optional[bytes]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(dict(request.headers.raw).get(b"x-name"))
        return httpx.Response(200, headers=[(b"content-disposition", disposition)])

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(Request("GET", "proxy.local", "/", headers=Headers({"x-name": "caf\xe9"})))

    assert isinstance(result, Response)
    assert received == [b"caf\xe9"]
    assert result.headers["content-disposition"].encode("latin1") == disposition


@pytest.mark.anyio
async def test_connection_error_is_a_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async with make_fetcher(handler) as fetcher:
        result = await fetcher.fetch(Request("GET", "proxy.local", "/"))

    assert result == FetchFailure(message="Connection refused", status_code=503)


@pytest.mark.anyio
async def test_timeout_is_a_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with make_fetcher(handler, timeout=5) as fetcher:
        result = await fetcher.fetch(Request("GET", "proxy.local", "/slow"))

    assert result == FetchFailure(
        message="Upstream request timed out after 5s: http://upstream:8080/slow",
        status_code=503,
    )
