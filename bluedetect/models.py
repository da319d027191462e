from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

JobStatus = Literal["running", "completed", "stopped", "error"]
Confidence = Literal["high", "medium", "low"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "stopped", "error"})


class _CamelModel(BaseModel):
    # Progress pollers read camelCase keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DomainEvidence(_CamelModel):
    domain: str
    evidence: list[str]
    company_name: str | None = None


class JobProgress(_CamelModel):
    status: JobStatus = "running"
    total: int = 0
    checked: int = 0
    success_count: int = 0
    current_domain: str | None = None
    successful_domains: list[str] = Field(default_factory=list)
    successful_domains_with_evidence: list[DomainEvidence] = Field(default_factory=list)
    start_time: float = Field(default_factory=time.time)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def record_success(self, domain: str, evidence: list[str], company_name: str | None = None) -> None:
        self.successful_domains.append(domain)
        self.successful_domains_with_evidence.append(
            DomainEvidence(domain=domain, evidence=list(evidence), company_name=company_name)
        )
        self.success_count = len(self.successful_domains)


class CheckRequest(BaseModel):
    filename: str | None = None
    # Kept for compatibility with older UIs that still send it; only HTTP probing exists.
    method: str = "http"
    domain_column: int | None = Field(None, ge=0)


class UploadResponse(_CamelModel):
    success: bool = True
    filename: str
    domain_count: int
    domain_column: int
    sample_domain: str | None = None


class CheckResponse(_CamelModel):
    success: bool = True
    job_id: str
    total_domains: int


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    status_code: int | None = None
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: str = ""
    final_url: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class DomainCheck:
    domain: str
    matched: bool
    evidence: list[str] = field(default_factory=list)
    company_name: str | None = None
    final_url: str | None = None


@dataclass(frozen=True)
class ExtractedDomains:
    domains: list[str]
    column: int
    header_skipped: bool
