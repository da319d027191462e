from __future__ import annotations

import csv
import io
import re

import chardet

from .models import ExtractedDomains

HEADER_NAMES = ("domain", "website", "url")
DEFAULT_COLUMN = 2

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s")


class CSVParseError(ValueError):
    pass


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    detected = chardet.detect(data[:100000])
    encoding = detected.get("encoding")
    if not encoding:
        raise CSVParseError("Unable to detect file encoding.")
    try:
        return data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise CSVParseError(f"Unable to decode file as {encoding}: {e}") from e


def _parse_rows(data: bytes) -> list[list[str]]:
    text = _decode(data)
    try:
        rows = list(csv.reader(io.StringIO(text, newline=""), strict=True))
    except csv.Error as e:
        raise CSVParseError(str(e)) from e
    return [row for row in rows if row]


def _looks_like_domain(cell: str) -> bool:
    c = cell.lower()
    return "." in c and not _WHITESPACE_RE.search(c) and "@" not in c and c not in HEADER_NAMES


def detect_domain_column(first_row: list[str]) -> tuple[int, bool]:
    """Pick the column holding domains from the first CSV row.

    Returns ``(index, first_row_is_data)``. A cell that already looks like a
    hostname wins over a header literal, and a row with neither falls back to
    column 2 and is treated as a header.
    """
    for i, cell in enumerate(first_row):
        if _looks_like_domain(cell or ""):
            return i, True
    for i, cell in enumerate(first_row):
        if (cell or "").lower() in HEADER_NAMES:
            return i, False
    return DEFAULT_COLUMN, False


def normalize_domain(cell: str) -> str:
    value = _SCHEME_RE.sub("", cell.strip())
    if value.endswith("/"):
        value = value[:-1]
    return value.strip()


def extract_domains(data: bytes, column: int | None = None) -> ExtractedDomains:
    rows = _parse_rows(data)
    if not rows:
        return ExtractedDomains(domains=[], column=DEFAULT_COLUMN if column is None else column, header_skipped=False)

    if column is None:
        column, first_row_is_data = detect_domain_column(rows[0])
    else:
        first = rows[0][column] if column < len(rows[0]) else ""
        first_row_is_data = (first or "").lower() not in HEADER_NAMES

    body = rows if first_row_is_data else rows[1:]
    domains: list[str] = []
    for row in body:
        if column >= len(row):
            continue
        cell = row[column]
        if not cell or cell.lower() == "domain":
            continue
        domain = normalize_domain(cell)
        if domain:
            domains.append(domain)

    return ExtractedDomains(domains=domains, column=column, header_skipped=not first_row_is_data)
