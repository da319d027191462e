from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path

from .models import DomainCheck, JobProgress

logger = logging.getLogger(__name__)

DomainCheckFn = Callable[[str], Awaitable[DomainCheck]]


class JobStore:
    """In-memory job registry keyed by job id.

    Each job carries its progress record and a cancellation token; the store
    lives as long as the process that owns it.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobProgress] = {}
        self._tokens: dict[str, asyncio.Event] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def create(self, total: int) -> tuple[str, JobProgress]:
        job_id = uuid.uuid4().hex
        progress = JobProgress(total=total)
        self._jobs[job_id] = progress
        self._tokens[job_id] = asyncio.Event()
        return job_id, progress

    def get(self, job_id: str) -> JobProgress | None:
        return self._jobs.get(job_id)

    def token(self, job_id: str) -> asyncio.Event:
        return self._tokens[job_id]

    def stop(self, job_id: str) -> bool:
        progress = self._jobs.get(job_id)
        if progress is None:
            return False
        self._tokens[job_id].set()
        if progress.status == "running":
            progress.status = "stopped"
        return True

    def sweep(self, max_age_s: float, now: float | None = None) -> int:
        now = time.time() if now is None else now
        expired = [job_id for job_id, p in self._jobs.items() if now - p.start_time > max_age_s]
        for job_id in expired:
            self._jobs.pop(job_id, None)
            self._tokens.pop(job_id, None)
        return len(expired)


def sweep_uploads(upload_dir: Path, max_age_s: float, now: float | None = None) -> int:
    now = time.time() if now is None else now
    if not upload_dir.is_dir():
        return 0
    removed = 0
    for path in upload_dir.iterdir():
        if not path.is_file():
            continue
        try:
            if now - path.stat().st_mtime > max_age_s:
                path.unlink()
                removed += 1
        except FileNotFoundError:
            continue
    return removed


class JobRunner:
    def __init__(self, store: JobStore, check: DomainCheckFn, *, delay_s: float = 0.5) -> None:
        self.store = store
        self.check = check
        self.delay_s = delay_s
        self._tasks: set[asyncio.Task] = set()

    def start(self, domains: list[str]) -> str:
        job_id, _ = self.store.create(len(domains))
        task = asyncio.create_task(self.run(job_id, domains), name=f"job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def run(self, job_id: str, domains: list[str]) -> JobProgress:
        progress = self.store.get(job_id)
        if progress is None:
            raise KeyError(job_id)
        token = self.store.token(job_id)
        total = len(domains)

        try:
            for i, domain in enumerate(domains):
                if token.is_set():
                    break

                progress.current_domain = domain
                progress.checked = i + 1
                logger.info("Checking %d/%d: %s", i + 1, total, domain)

                try:
                    result = await self.check(domain)
                except Exception as e:
                    logger.warning("%s - error: %s", domain, e)
                else:
                    if result.matched:
                        progress.record_success(domain, result.evidence, result.company_name)
                        logger.info("%s - Umbraco detected. Evidence: %s", domain, "; ".join(result.evidence))
                    else:
                        logger.info("%s - no Umbraco evidence found", domain)

                await asyncio.sleep(self.delay_s)

            progress.status = "stopped" if token.is_set() else "completed"
        except asyncio.CancelledError:
            token.set()
            if progress.status == "running":
                progress.status = "stopped"
            raise
        except Exception as e:
            logger.exception("Job %s failed", job_id)
            if progress.status == "running":
                progress.status = "error"
                progress.error = str(e)
        finally:
            progress.current_domain = None

        logger.info("Job %s finished (%s). %d/%d domains successful.", job_id, progress.status, progress.success_count, total)
        return progress

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
