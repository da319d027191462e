from __future__ import annotations

import csv
import io

from .models import JobProgress

EVIDENCE_SEPARATOR = "; "


def results_to_csv(progress: JobProgress, include_company: bool = False) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    if include_company:
        writer.writerow(["Domain", "Company Name", "Evidence"])
    else:
        writer.writerow(["Domain", "Evidence"])
    for item in progress.successful_domains_with_evidence:
        evidence = EVIDENCE_SEPARATOR.join(item.evidence)
        if include_company:
            writer.writerow([item.domain, item.company_name or "", evidence])
        else:
            writer.writerow([item.domain, evidence])
    return buf.getvalue()
