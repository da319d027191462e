import asyncio

import httpx

from bluedetect import checker
from bluedetect.checker import check_domain, extract_company_name
from bluedetect.models import ProbeResult
from bluedetect.prober import Prober

LOGIN_PAGE = (
    "<html><head><title>Acme Backoffice</title>"
    '<meta property="og:site_name" content="Acme Ltd"></head>'
    '<body class="umbraco-login"><script src="/umbraco/scripts/umbraco.min.js"></script></body></html>'
)


def _prober(handler) -> Prober:
    return Prober(transport=httpx.MockTransport(handler))


def test_https_match_short_circuits() -> None:
    schemes: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        schemes.append(request.url.scheme)
        return httpx.Response(200, text=LOGIN_PAGE)

    result = asyncio.run(check_domain("acme.com", _prober(handler)))

    assert schemes == ["https"]
    assert result.matched is True
    assert result.evidence[0].startswith("Umbraco detected")
    assert result.company_name == "Acme Ltd"
    assert result.final_url == "https://acme.com/umbraco/"


def test_http_result_replaces_https_negative() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            return httpx.Response(404)
        return httpx.Response(200, text=LOGIN_PAGE)

    result = asyncio.run(check_domain("acme.com", _prober(handler)))

    assert result.matched is True
    assert result.final_url == "http://acme.com/umbraco/"


def test_http_negative_overwrites_https_negative() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            return httpx.Response(403)
        return httpx.Response(500)

    result = asyncio.run(check_domain("acme.com", _prober(handler)))

    assert result.matched is False
    assert result.evidence == ["Status code: 500"]


def test_https_negative_stands_when_http_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            return httpx.Response(403)
        raise httpx.ConnectTimeout("timed out", request=request)

    result = asyncio.run(check_domain("acme.com", _prober(handler)))

    assert result.matched is False
    assert result.evidence == ["Status code: 403"]


def test_both_schemes_failing_yields_no_evidence() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = asyncio.run(check_domain("down.example", _prober(handler)))

    assert result.matched is False
    assert result.evidence == []
    assert result.company_name is None
    assert result.final_url is None


def test_extract_company_name_fallbacks() -> None:
    assert extract_company_name("<title>  Acme \n Home </title>") == "Acme Home"
    assert extract_company_name("<body><h1>Beta <b>Corp</b></h1></body>") == "Beta Corp"
    assert extract_company_name("<p>nothing</p>") is None
    assert extract_company_name("") is None


def test_scoring_failure_on_https_still_tries_http(monkeypatch) -> None:
    real_classify = checker.classify

    def flaky_classify(body, headers, status_code, url):
        if url.startswith("https://"):
            raise ValueError("unexpected markup")
        return real_classify(body, headers, status_code, url)

    monkeypatch.setattr(checker, "classify", flaky_classify)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=LOGIN_PAGE)

    result = asyncio.run(check_domain("acme.com", _prober(handler)))

    assert result.matched is True
    assert result.final_url == "http://acme.com/umbraco/"


def test_check_domain_consumes_prober_attempts() -> None:
    class ScriptedProber(Prober):
        async def attempts(self, domain):
            yield ProbeResult(success=False, final_url=f"https://{domain}/umbraco/", error="refused")
            yield ProbeResult(success=True, status_code=200, body=LOGIN_PAGE, final_url=f"http://{domain}/umbraco/")

    result = asyncio.run(check_domain("acme.com", ScriptedProber()))

    assert result.matched is True
    assert result.final_url == "http://acme.com/umbraco/"
