from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from .models import DomainCheck, ProbeResult
from .prober import Prober
from .scorer import classify

logger = logging.getLogger(__name__)


def extract_company_name(html: str) -> str | None:
    """Best-effort display name: og:site_name, then <title>, then the first <h1>."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    og = soup.find("meta", attrs={"property": "og:site_name"})
    if og and og.get("content", "").strip():
        return og["content"].strip()[:200]
    if soup.title and soup.title.string and soup.title.string.strip():
        return re.sub(r"\s+", " ", soup.title.string.strip())[:200]
    h1 = soup.find("h1")
    if h1:
        text = h1.get_text(" ", strip=True)
        if text:
            return text[:200]
    return None


def _verdict(result: ProbeResult) -> tuple[bool, list[str]]:
    return classify(result.body, result.headers, result.status_code or 0, result.final_url or "")


async def check_domain(domain: str, prober: Prober) -> DomainCheck:
    """HTTPS first; a positive verdict there ends the check.

    Otherwise the HTTP verdict replaces the HTTPS one, unless HTTP fails at the
    network level or cannot be scored, in which case the HTTPS negative stands.
    """
    matched = False
    evidence: list[str] = []
    final: ProbeResult | None = None

    async for result in prober.attempts(domain):
        if not result.success:
            continue
        try:
            verdict = _verdict(result)
        except Exception as e:
            logger.warning("%s - scoring %s failed: %s", domain, result.final_url, e)
            continue
        matched, evidence = verdict
        final = result
        if matched:
            break

    company = extract_company_name(final.body) if matched and final else None
    return DomainCheck(
        domain=domain,
        matched=matched,
        evidence=evidence,
        company_name=company,
        final_url=final.final_url if final else None,
    )
