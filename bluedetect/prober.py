from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from urllib.parse import urlsplit

import httpx

from .models import ProbeResult

logger = logging.getLogger(__name__)

PROBE_PATH = "/umbraco/"
SCHEMES = ("https", "http")
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_REDIRECT_STATUSES = (301, 302)


def resolve_location(current_url: str, location: str) -> str:
    cur = urlsplit(current_url)
    if location.startswith("/"):
        return f"{cur.scheme}://{cur.netloc}{location}"
    if not location.startswith("http"):
        return f"{cur.scheme}://{cur.netloc}/{location}"
    return location


class Prober:
    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "user-agent": self.user_agent,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "accept-language": "en-US,en;q=0.9",
            "accept-encoding": "gzip, deflate",
            "connection": "close",
        }

    async def fetch(self, url: str) -> ProbeResult:
        """GET ``url``, following up to ``max_redirects`` 301/302 hops.

        Network failures propagate as ``httpx.HTTPError``; exceeding the
        redirect cap raises ``httpx.TooManyRedirects``. Only 200 responses
        carry a body, already decompressed by httpx.
        """
        current = url
        redirects = 0
        async with httpx.AsyncClient(
            timeout=self.timeout_s,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            while True:
                async with client.stream("GET", current, headers=self._headers()) as res:
                    location = res.headers.get("location")
                    if res.status_code in _REDIRECT_STATUSES and location:
                        redirects += 1
                        if redirects > self.max_redirects:
                            raise httpx.TooManyRedirects(
                                f"Too many redirects (max {self.max_redirects})",
                                request=res.request,
                            )
                        target = resolve_location(current, location)
                        if redirects == 1:
                            logger.debug("%s - following redirect: %s -> %s", urlsplit(current).hostname, current, target)
                        current = target
                        continue

                    body = ""
                    if res.status_code == 200:
                        await res.aread()
                        body = res.text
                    return ProbeResult(
                        success=True,
                        status_code=res.status_code,
                        headers=res.headers,
                        body=body,
                        final_url=current,
                    )

    async def attempts(self, domain: str) -> AsyncIterator[ProbeResult]:
        """Yield one result per scheme, HTTPS first.

        Network failures come back as ``success=False`` results instead of
        raising, so callers decide whether to move on to the next scheme.
        """
        for scheme in SCHEMES:
            url = f"{scheme}://{domain}{PROBE_PATH}"
            try:
                result = await self.fetch(url)
            except httpx.HTTPError as e:
                logger.info("%s - %s failed: %s", domain, scheme.upper(), e)
                result = ProbeResult(success=False, final_url=url, error=str(e))
            yield result

    async def probe(self, domain: str) -> ProbeResult:
        """First successful fetch across the schemes, or the last failure."""
        result = ProbeResult(success=False)
        async for result in self.attempts(domain):
            if result.success:
                break
        return result
