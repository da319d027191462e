from __future__ import annotations

import asyncio
import functools
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .checker import check_domain
from .config import Settings
from .csv_extractor import CSVParseError, extract_domains
from .export import results_to_csv
from .jobs import JobRunner, JobStore, sweep_uploads
from .models import CheckRequest, CheckResponse, JobProgress, UploadResponse
from .prober import Prober

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    root = logging.getLogger("bluedetect")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
        root.addHandler(handler)
    root.setLevel(level)


def cleanup_once(app: FastAPI, now: float | None = None) -> tuple[int, int]:
    settings: Settings = app.state.settings
    jobs = app.state.store.sweep(settings.retention_s, now=now)
    files = sweep_uploads(settings.upload_dir, settings.retention_s, now=now)
    if jobs or files:
        logger.info("Cleanup removed %d job(s) and %d upload(s)", jobs, files)
    return jobs, files


async def _cleanup_loop(app: FastAPI) -> None:
    while True:
        await asyncio.sleep(app.state.settings.sweep_interval_s)
        cleanup_once(app)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    _configure_logging(settings.log_level)
    settings.upload_dir.mkdir(parents=True, exist_ok=True)

    prober = Prober(timeout_s=settings.probe_timeout_s, max_redirects=settings.max_redirects)
    store = JobStore()
    app.state.settings = settings
    app.state.store = store
    app.state.runner = JobRunner(store, functools.partial(check_domain, prober=prober), delay_s=settings.delay_s)

    cleanup = asyncio.create_task(_cleanup_loop(app))
    logger.info("BlueDetect ready, uploads in %s", settings.upload_dir.resolve())
    try:
        yield
    finally:
        cleanup.cancel()
        await asyncio.gather(cleanup, return_exceptions=True)
        await app.state.runner.shutdown()


app = FastAPI(title="BlueDetect - Umbraco CMS Detector", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings.from_env().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_progress(request: Request, job_id: str) -> JobProgress:
    progress = request.app.state.store.get(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return progress


def _upload_path(request: Request, filename: str) -> Path:
    # Only bare names produced by /upload are valid.
    if Path(filename).name != filename or filename in ("", ".", ".."):
        raise HTTPException(status_code=404, detail="File not found")
    return request.app.state.settings.upload_dir / filename


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/upload", response_model=UploadResponse)
async def upload_endpoint(request: Request, csvfile: UploadFile | None = File(None)):
    if csvfile is None or not csvfile.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    original = Path(csvfile.filename).name
    if csvfile.content_type != "text/csv" and not original.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    data = await csvfile.read()
    try:
        extracted = extract_domains(data)
    except CSVParseError as e:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {e}")

    filename = f"{int(time.time() * 1000)}-{original}"
    (request.app.state.settings.upload_dir / filename).write_bytes(data)

    return UploadResponse(
        filename=filename,
        domain_count=len(extracted.domains),
        domain_column=extracted.column,
        sample_domain=extracted.domains[0] if extracted.domains else None,
    )


@app.post("/check", response_model=CheckResponse)
async def check_endpoint(request: Request, req: CheckRequest):
    if not req.filename:
        raise HTTPException(status_code=400, detail="No filename provided")
    path = _upload_path(request, req.filename)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    # Without an explicit column, detection reruns on the stored bytes and so
    # matches what /upload reported.
    try:
        extracted = extract_domains(path.read_bytes(), column=req.domain_column)
    except CSVParseError as e:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {e}")

    job_id = request.app.state.runner.start(extracted.domains)
    logger.info("Job %s started for %s (%d domains)", job_id, req.filename, len(extracted.domains))
    return CheckResponse(job_id=job_id, total_domains=len(extracted.domains))


@app.get("/progress/{job_id}", response_model=JobProgress)
def progress_endpoint(request: Request, job_id: str):
    return _get_progress(request, job_id)


@app.post("/stop/{job_id}")
def stop_endpoint(request: Request, job_id: str):
    if not request.app.state.store.stop(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True}


@app.get("/download/{job_id}")
def download_endpoint(request: Request, job_id: str, include_company: bool = False):
    progress = _get_progress(request, job_id)
    if not progress.successful_domains:
        raise HTTPException(status_code=400, detail="No successful domains to download")
    return Response(
        content=results_to_csv(progress, include_company=include_company),
        media_type="text/csv",
        headers={"content-disposition": 'attachment; filename="umbraco_domains_with_evidence.csv"'},
    )
