import asyncio
import gzip
import zlib

import httpx
import pytest

from bluedetect.prober import Prober, resolve_location


def _chain_handler(hops: int):
    """Redirect /umbraco/ through ``hops`` 302s before answering 200."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        step = int(path.rsplit("/", 1)[-1]) if path.startswith("/hop/") else 0
        if step < hops:
            return httpx.Response(302, headers={"location": f"/hop/{step + 1}"})
        return httpx.Response(200, text="<html>done</html>")

    return handler


def _prober(handler) -> Prober:
    return Prober(transport=httpx.MockTransport(handler))


def test_five_redirects_are_followed() -> None:
    result = asyncio.run(_prober(_chain_handler(5)).fetch("https://example.com/umbraco/"))

    assert result.success is True
    assert result.status_code == 200
    assert result.final_url == "https://example.com/hop/5"
    assert result.body == "<html>done</html>"


def test_six_redirects_fail() -> None:
    with pytest.raises(httpx.TooManyRedirects):
        asyncio.run(_prober(_chain_handler(6)).fetch("https://example.com/umbraco/"))


def test_redirect_cap_is_configurable() -> None:
    prober = Prober(max_redirects=1, transport=httpx.MockTransport(_chain_handler(2)))

    with pytest.raises(httpx.TooManyRedirects):
        asyncio.run(prober.fetch("https://example.com/umbraco/"))


def test_redirect_can_switch_scheme() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "http":
            return httpx.Response(301, headers={"location": "https://example.com/umbraco/"})
        return httpx.Response(200, text="secure")

    result = asyncio.run(_prober(handler).fetch("http://example.com/umbraco/"))

    assert result.final_url == "https://example.com/umbraco/"
    assert result.body == "secure"


def test_non_200_is_a_successful_fetch_without_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not here", headers={"server": "nginx"})

    result = asyncio.run(_prober(handler).fetch("https://example.com/umbraco/"))

    assert result.success is True
    assert result.status_code == 404
    assert result.body == ""
    assert result.headers["Server"] == "nginx"


def test_redirect_without_location_is_returned_as_is() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302)

    result = asyncio.run(_prober(handler).fetch("https://example.com/umbraco/"))

    assert result.status_code == 302


@pytest.mark.parametrize(
    "encoding,compress",
    [("gzip", gzip.compress), ("deflate", zlib.compress)],
)
def test_compressed_bodies_are_decoded(encoding, compress) -> None:
    html = b"<html><body class=\"umbraco\">hello</body></html>"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-encoding": encoding, "content-type": "text/html; charset=utf-8"},
            content=compress(html),
        )

    result = asyncio.run(_prober(handler).fetch("https://example.com/umbraco/"))

    assert result.body == html.decode()


def test_request_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    asyncio.run(_prober(handler).fetch("https://example.com/umbraco/"))

    assert seen[0].method == "GET"
    assert "Chrome/" in seen[0].headers["user-agent"]
    assert seen[0].headers["accept-encoding"] == "gzip, deflate"
    assert seen[0].headers["connection"] == "close"


def test_probe_falls_back_to_http_on_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            raise httpx.ConnectError("TLS handshake failed", request=request)
        return httpx.Response(200, text="plain")

    result = asyncio.run(_prober(handler).probe("example.com"))

    assert result.success is True
    assert result.final_url == "http://example.com/umbraco/"
    assert result.body == "plain"


def test_probe_reports_failure_when_both_schemes_fail() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    result = asyncio.run(_prober(handler).probe("nope.invalid"))

    assert result.success is False
    assert result.status_code is None
    assert "Name or service not known" in result.error


def test_resolve_location() -> None:
    assert resolve_location("https://a.com/umbraco/", "/login") == "https://a.com/login"
    assert resolve_location("http://a.com:8080/x", "/y") == "http://a.com:8080/y"
    assert resolve_location("https://a.com/umbraco/", "login.aspx") == "https://a.com/login.aspx"
    assert resolve_location("https://a.com/", "http://b.com/z") == "http://b.com/z"


def test_attempts_yield_one_result_per_scheme() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(403)

    async def collect():
        return [r async for r in _prober(handler).attempts("example.com")]

    results = asyncio.run(collect())

    assert [r.success for r in results] == [False, True]
    assert results[0].final_url == "https://example.com/umbraco/"
    assert results[1].status_code == 403
