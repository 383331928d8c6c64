from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .job_manager import JobHandle, JobManager, JobRecord
from .merger import EmptyMergeError
from .models import (
    JobCreateResponse,
    JobStatusResponse,
    LimitsResponse,
    ProcessResponse,
    ProviderLimit,
)
from .pdf_utils import LoadError, ResourceExhaustionError
from .pipeline import ProcessingOptions, ProcessingResult, process_documents
from .providers import EMAIL_PROVIDERS
from .reducer import CompressionLevel
from .splitter import InvalidBudgetError, PartitionCancelledError, target_mb_to_bytes

logger = logging.getLogger("uvicorn.error")
settings = get_settings()

app = FastAPI(title="Flexi PDF Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _load_uploads(files: List[UploadFile]) -> List[Tuple[str, bytes]]:
    if not files:
        raise HTTPException(status_code=400, detail="No file uploaded")
    settings = get_settings()
    loaded: List[Tuple[str, bytes]] = []
    total = 0
    for index, upload in enumerate(files, start=1):
        contents = await upload.read()
        name = upload.filename or f"document_{index}.pdf"
        if not contents:
            raise HTTPException(status_code=400, detail=f"Empty file uploaded: {name}")
        content_type = upload.content_type or "application/pdf"
        if content_type != "application/pdf":
            logger.warning("Unexpected content type %s for %s; treating it as PDF", content_type, name)
        total += len(contents)
        if total > settings.max_upload_bytes:
            raise HTTPException(status_code=413, detail="Uploaded files exceed the maximum allowed size")
        loaded.append((name, contents))
    return loaded


def _build_options(
    compression_level: Optional[str],
    target_mb: Optional[str],
    merge: bool,
    base_name: Optional[str],
) -> ProcessingOptions:
    settings = get_settings()
    try:
        level = CompressionLevel.parse(compression_level or settings.default_compression_level)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    target = target_mb if target_mb not in (None, "") else settings.default_target_mb
    try:
        target_mb_to_bytes(target)
    except InvalidBudgetError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ProcessingOptions(level=level, target_mb=target, merge=merge, base_name=base_name)


def _run_processing(inputs: List[Tuple[str, bytes]], options: ProcessingOptions, **kwargs) -> ProcessingResult:
    settings = get_settings()
    try:
        return process_documents(
            inputs,
            options,
            producer=settings.producer,
            merged_base_name=settings.merged_base_name,
            **kwargs,
        )
    except InvalidBudgetError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LoadError as exc:
        logger.error("PDF could not be loaded: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ResourceExhaustionError as exc:
        logger.error("PDF processing ran out of memory: %s", exc)
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except EmptyMergeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _process_job_record(job: JobRecord, handle: JobHandle) -> None:
    if job.cancel_event.is_set():
        raise PartitionCancelledError("Job was cancelled before it started")
    handle.update(stage="loading", detail="Reading uploaded files")
    inputs = job.read_inputs()

    def on_stage(stage: str, detail: str) -> None:
        handle.update(stage=stage, detail=detail)

    def on_progress(processed: int, total: int) -> None:
        handle.update(processed_pages=processed, total_pages=total)

    result = _run_processing(
        inputs,
        job.options,
        stage_callback=on_stage,
        progress_callback=on_progress,
        cancel_event=job.cancel_event,
        run_id=job.job_id,
    )
    handle.update(
        status="completed",
        stage="completed",
        detail=f"{len(result.parts)} file(s) ready",
        result=result,
    )


job_manager = JobManager(_process_job_record)


def _get_job(job_id: str) -> JobRecord:
    job = job_manager.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _job_status(job: JobRecord) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        stage=job.stage,
        detail=job.detail,
        processed_pages=job.processed_pages or None,
        total_pages=job.total_pages or None,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@app.get("/api/ping")
def ping() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/meta/limits", response_model=LimitsResponse)
def get_limits() -> LimitsResponse:
    settings = get_settings()
    return LimitsResponse(
        default_target_mb=settings.default_target_mb,
        default_compression_level=settings.default_compression_level,
        max_upload_mb=round(settings.max_upload_bytes / (1024 * 1024), 2),
        compression_levels=list(CompressionLevel),
        providers=[
            ProviderLimit(
                name=provider.name,
                limit_mb=provider.limit_mb,
                suggested_target_mb=provider.suggested_target_mb,
            )
            for provider in EMAIL_PROVIDERS
        ],
    )


@app.post("/api/documents/process", response_model=ProcessResponse)
async def process_upload(
    files: List[UploadFile] = File(...),
    compression_level: Optional[str] = Form(None),
    target_mb: Optional[str] = Form(None),
    merge: bool = Form(False),
    base_name: Optional[str] = Form(None),
) -> ProcessResponse:
    options = _build_options(compression_level, target_mb, merge, base_name)
    inputs = await _load_uploads(files)
    result = _run_processing(inputs, options)
    return ProcessResponse.from_result(result)


@app.post("/api/jobs", response_model=JobCreateResponse, status_code=202)
async def enqueue_job(
    files: List[UploadFile] = File(...),
    compression_level: Optional[str] = Form(None),
    target_mb: Optional[str] = Form(None),
    merge: bool = Form(False),
    base_name: Optional[str] = Form(None),
) -> JobCreateResponse:
    options = _build_options(compression_level, target_mb, merge, base_name)
    inputs = await _load_uploads(files)
    job = job_manager.submit(inputs, options)
    return JobCreateResponse(status="accepted", job_id=job.job_id)


@app.get("/api/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str) -> JobStatusResponse:
    return _job_status(_get_job(job_id))


@app.get("/api/jobs/{job_id}/result", response_model=ProcessResponse)
async def get_job_result(job_id: str) -> ProcessResponse:
    job = _get_job(job_id)
    if job.status != "completed" or job.result is None:
        raise HTTPException(status_code=409, detail="Job is not completed")
    return ProcessResponse.from_result(job.result)


@app.delete("/api/jobs/{job_id}", response_model=JobStatusResponse)
async def cancel_job(job_id: str) -> JobStatusResponse:
    _get_job(job_id)
    job = job_manager.cancel(job_id)
    return _job_status(job)


@app.on_event("startup")
def log_startup() -> None:
    settings = get_settings()
    logger.info(
        "Defaults: level=%s, target=%s MB, max upload=%s bytes",
        settings.default_compression_level.value,
        settings.default_target_mb,
        settings.max_upload_bytes,
    )
    logger.info("Merged output base name: %s", settings.merged_base_name)
