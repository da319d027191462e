from __future__ import annotations

import re
from collections.abc import Mapping
from urllib.parse import urlsplit

from .models import Confidence

MATCH_THRESHOLD = 3

_GENERATOR_RE = re.compile(
    r"<meta\s+name=['\"]generator['\"]\s+content=['\"]([^'\"]+)['\"]",
    re.IGNORECASE,
)
_GENERATOR_REVERSED_RE = re.compile(
    r"<meta\s+content=['\"]([^'\"]+)['\"]\s+name=['\"]generator['\"]",
    re.IGNORECASE,
)

NON_UMBRACO_GENERATORS = (
    # traditional CMS
    "wordpress", "drupal", "joomla", "typo3", "modx", "concrete5", "textpattern",
    "processwire", "craft cms", "expressionengine",
    # e-commerce
    "magento", "opencart", "prestashop", "woocommerce", "shopify", "bigcommerce",
    # static site generators
    "jekyll", "hugo", "gatsby", "next.js", "nuxt.js", "hexo", "pelican", "middleman",
    # website builders
    "wix.com", "squarespace", "weebly", "webflow",
    # wikis and docs
    "mediawiki", "dokuwiki", "tiddlywiki", "gitiles",
    # blogging
    "ghost", "blogger", "tumblr",
    # enterprise
    "sitecore", "adobe experience manager", "episerver", "optimizely", "kentico",
    # headless
    "contentful", "strapi", "sanity",
    # forums
    "phpbb", "vbulletin", "xenforo", "discourse",
)

UMBRACO_FILE_PATHS = (
    "/App_Plugins/",
    "/umbraco_client/",
    "/Views/",
    "/umbraco/umbraco.aspx",
    "/umbraco/login.aspx",
    "/umbraco/dashboard.aspx",
)

ASPNET_HEADERS = ("x-aspnet-version", "x-aspnetmvc-version", "x-powered-by")

UMBRACO_DIRECTORIES = (
    "App_Plugins",
    "umbraco_client",
    "umbraco/Views",
    "umbraco/App_Plugins",
    "umbraco/umbraco",
)

CLIENT_DEPENDENCY_PATTERNS = (
    "umbraco.clientdependency",
    "umbraco_client",
    "ClientDependency",
    "umbraco.css",
    "umbraco.js",
)

UMBRACO_ELEMENTS = (
    'class="umbraco',
    'id="umbraco',
    "<umbraco",
    "umbraco-login",
    "umbraco-dashboard",
    "umbraco-content",
)

UMBRACO_SCRIPTS = ("umbraco.js", "umbraco.min.js", "umbraco_client", "umbraco/scripts")

UMBRACO_TEXT_PATTERNS = ("umbraco", "umbraco.aspx", "umbraco-login", "umbraco-dashboard")


def extract_generator(body: str) -> str | None:
    m = _GENERATOR_RE.search(body) or _GENERATOR_REVERSED_RE.search(body)
    return m.group(1) if m else None


def excluded_generator(body: str) -> str | None:
    """Return the generator value when it names a platform other than Umbraco."""
    generator = extract_generator(body)
    if not generator:
        return None
    lowered = generator.lower()
    if any(name in lowered for name in NON_UMBRACO_GENERATORS):
        return generator
    return None


def confidence_for(score: int) -> Confidence:
    if score >= 6:
        return "high"
    if score >= MATCH_THRESHOLD:
        return "medium"
    return "low"


def _contains_ci(body_lower: str, patterns: tuple[str, ...]) -> list[str]:
    return [p for p in patterns if p.lower() in body_lower]


def score_evidence(body: str, headers: Mapping[str, str], url: str) -> tuple[int, list[str]]:
    score = 0
    evidence: list[str] = []
    body_lower = body.lower()
    path = urlsplit(url).path

    if "/umbraco" in path:
        score += 3
        evidence.append("PRIMARY: Admin path /umbraco/ detected")

    found_paths = [p for p in UMBRACO_FILE_PATHS if p in url or p in body]
    if found_paths:
        score += 3
        evidence.append(f"PRIMARY: Umbraco file paths detected: {', '.join(found_paths)}")

    header_keys = [k.lower() for k in headers.keys()]
    found_headers = [h for h in ASPNET_HEADERS if any(h in k for k in header_keys)]
    if found_headers:
        score += 2
        evidence.append(f"SECONDARY: ASP.NET/IIS headers detected: {', '.join(found_headers)}")

    found_dirs = [d for d in UMBRACO_DIRECTORIES if d in body and f"/{d}/" not in found_paths]
    if found_dirs:
        score += 2
        evidence.append(f"SECONDARY: Umbraco directory structures: {', '.join(found_dirs)}")

    found_cdf = _contains_ci(body_lower, CLIENT_DEPENDENCY_PATTERNS)
    if found_cdf:
        score += 2
        evidence.append(f"SECONDARY: Client Dependency Framework patterns: {', '.join(found_cdf)}")

    if ".aspx" in body or ".aspx" in url:
        score += 1
        evidence.append("TERTIARY: ASPX extensions detected (.NET application)")

    found_elements = [e for e in UMBRACO_ELEMENTS if e in body]
    if found_elements:
        score += 1
        evidence.append(f"TERTIARY: Umbraco HTML elements: {', '.join(found_elements)}")

    found_js = _contains_ci(body_lower, UMBRACO_SCRIPTS)
    if found_js:
        score += 1
        evidence.append(f"TERTIARY: Umbraco JavaScript references: {', '.join(found_js)}")

    found_text = _contains_ci(body_lower, UMBRACO_TEXT_PATTERNS)
    if found_text:
        score += 1
        evidence.append(f"TERTIARY: Umbraco text patterns: {', '.join(found_text)}")

    return score, evidence


def classify(body: str, headers: Mapping[str, str], status_code: int, url: str) -> tuple[bool, list[str]]:
    if status_code != 200:
        return False, [f"Status code: {status_code}"]

    generator = excluded_generator(body)
    if generator:
        return False, [f"EXCLUDED: Meta generator indicates non-Umbraco CMS: {generator}"]

    score, evidence = score_evidence(body, headers, url)
    matched = score >= MATCH_THRESHOLD
    if matched:
        summary = f"Umbraco detected (Score: {score}, Confidence: {confidence_for(score)})"
    else:
        summary = f"Not Umbraco (Score: {score}, need {MATCH_THRESHOLD}+ points)"
    return matched, [summary, *evidence]
