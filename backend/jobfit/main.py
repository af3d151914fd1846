import asyncio
import json
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from jobfit.core import (
    ALLOWED_EXT,
    ALLOWED_MIME,
    FINISHED_JOB_TTL_SECONDS,
    MAX_FILE_BYTES,
    AnalyzeResponse,
    DemoRequest,
    Stage,
    StatusResponse,
    load_settings,
)
from jobfit.errors import JobfitError, map_to_http_exception
from jobfit.logging_config import configure_for_environment, get_logger
from jobfit.messages import message
from jobfit.models import RawDocument, ScoringJob
from jobfit.services.catalog import JobCatalog
from jobfit.services.orchestrator import ScoringOrchestrator
from jobfit.services.progress import ProgressChannel
from jobfit.services.report import render_html_report, render_progress
from jobfit.services.report_pdf import build_pdf
from jobfit.services.scorer import GeminiScorer

configure_for_environment()
logger = get_logger(__name__)

settings = load_settings()
settings.upload_dir.mkdir(parents=True, exist_ok=True)

catalog = JobCatalog.from_file(settings.jobs_file)
orchestrator = ScoringOrchestrator.from_settings(settings, scorer=GeminiScorer.from_settings(settings), catalog=catalog)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["20/day"] if settings.is_prod else [],
)

rate_limit = limiter.limit("20/day") if settings.is_prod else (lambda fn: fn)

app = FastAPI(title="jobfit CV scoring", version="0.1.0")
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

jobs: dict[str, ScoringJob] = {}
_running: set = set()


def _msg(key: str) -> str:
    return message(key, settings.locale)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"status": False, "message": "Rate limit exceeded: 20 scorings/day per IP."},
    )


@app.exception_handler(JobfitError)
def jobfit_error_handler(request: Request, exc: JobfitError):
    http_exc = map_to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"status": False, **http_exc.detail})


async def run_scoring(job: ScoringJob, raw: Optional[RawDocument]):
    try:
        job.result = await orchestrator.evaluate(raw, job.job_id, job.channel)
    except JobfitError as e:
        http_exc = map_to_http_exception(e)
        if not job.channel.closed:
            job.channel.fail(http_exc.detail["message"])
        job.error = http_exc.detail
        job.error_status = http_exc.status_code
    except Exception as e:
        logger.exception("Scoring request %s crashed", job.request_id)
        if not job.channel.closed:
            job.channel.fail(_msg("extraction_failed"))
        job.error = {"message": str(e)}
        job.error_status = 500
    finally:
        latest = job.channel.latest
        if latest is not None:
            logger.info("Request %s finished: %s", job.request_id, render_progress(latest))


def evict_finished(now: Optional[float] = None) -> int:
    """Drop finished requests older than the TTL. Running ones are never evicted."""
    now = time.time() if now is None else now
    expired = [
        rid for rid, job in jobs.items()
        if job.state != "running" and now - job.created_at > FINISHED_JOB_TTL_SECONDS
    ]
    for rid in expired:
        del jobs[rid]
    if expired:
        logger.info("Evicted %d finished requests", len(expired))
    return len(expired)


def _get_job(request_id: str) -> ScoringJob:
    job = jobs.get(request_id)
    if not job:
        raise HTTPException(status_code=404, detail="Request not found")
    return job


@app.get("/", tags=["default"])
def root():
    return {"status": "ok", "service": "jobfit CV scoring", "docs": "/docs"}


@app.get("/health", tags=["default"])
def health():
    return {"ok": True, "env": settings.env, "rate_limit_enabled": settings.is_prod}


@app.get("/api/jobs/{job_id}", tags=["jobs"])
def get_job(job_id: int):
    return catalog.get(job_id).model_dump()


@app.post("/api/cv-score", response_model=None, tags=["scoring"])
@rate_limit
async def score_cv(
    request: Request,
    cv_file: UploadFile = File(...),
    job_id: int = Form(...),
):
    filename = cv_file.filename or ""
    content_type = cv_file.content_type or ""
    if Path(filename).suffix.lower() not in ALLOWED_EXT or content_type not in ALLOWED_MIME:
        await cv_file.close()
        raise HTTPException(status_code=400, detail=_msg("format_not_supported"))

    contents = await cv_file.read()
    await cv_file.close()
    if len(contents) > MAX_FILE_BYTES:
        raise HTTPException(status_code=413, detail=_msg("file_too_large"))

    # unknown job ids are rejected before any work starts
    catalog.get(job_id)

    evict_finished()
    request_id = str(uuid.uuid4())
    job = ScoringJob(request_id=request_id, job_id=job_id, filename=filename)
    jobs[request_id] = job
    logger.info("Accepted %s (%d bytes) for job %s as %s", filename, len(contents), job_id, request_id)

    raw = RawDocument(data=contents, declared_format=content_type, filename=filename)
    task = asyncio.create_task(run_scoring(job, raw))
    _running.add(task)
    task.add_done_callback(_running.discard)

    return AnalyzeResponse(status=True, request_id=request_id).model_dump()


@app.post("/api/cv-score/demo", tags=["scoring"])
async def score_demo(body: DemoRequest):
    requirement = catalog.get(body.job_id)
    report = await orchestrator.score(None, body.job_id, requirement, has_document=False, channel=ProgressChannel())
    return report.model_dump()


@app.get("/api/cv-score/{request_id}/status", response_model=StatusResponse, tags=["scoring"])
def status(request_id: str):
    job = _get_job(request_id)
    latest = job.channel.latest
    error = None
    if job.error:
        error = job.error.get("message") if isinstance(job.error, dict) else str(job.error)
    return StatusResponse(
        status=True,
        request_id=request_id,
        state=job.state,
        stage=latest.stage if latest else Stage.UPLOADING,
        progress=latest.percent if latest else 0,
        message=latest.message if latest else "Queued",
        error=error,
    )


@app.get("/api/cv-score/{request_id}/events", tags=["scoring"])
async def events(request_id: str):
    job = _get_job(request_id)

    async def stream():
        async for event in job.channel.subscribe():
            yield f"event: progress\ndata: {json.dumps(event.model_dump(mode='json'))}\n\n"

    return StreamingResponse(stream(), media_type="text/event-stream")


@app.get("/api/cv-score/{request_id}/result", tags=["scoring"])
def result(request_id: str):
    job = _get_job(request_id)
    if job.error is not None:
        raise HTTPException(status_code=job.error_status or 500, detail=job.error)
    if job.result is None:
        raise HTTPException(status_code=404, detail="Result not ready")
    return job.result.model_dump()


@app.get("/api/cv-score/{request_id}/report", response_class=HTMLResponse, tags=["scoring"])
def report(request_id: str):
    job = _get_job(request_id)
    if job.result is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return HTMLResponse(render_html_report(job.result, catalog.get(job.job_id), job.filename))


@app.get("/api/cv-score/{request_id}/download", tags=["scoring"])
def download(request_id: str):
    job = _get_job(request_id)
    if job.result is None:
        raise HTTPException(status_code=404, detail="Report not found")

    pdf_bytes = build_pdf(job.result, catalog.get(job.job_id), job.filename)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="CV_Fit_Report_{request_id}.pdf"'},
    )
