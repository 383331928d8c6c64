from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .pipeline import ProcessingOptions, ProcessingResult
from .splitter import PartitionCancelledError

logger = logging.getLogger(__name__)

JobStatus = str  # pending, running, completed, failed, cancelled
FINISHED_STATUSES = frozenset({"completed", "failed", "cancelled"})
MAX_FINISHED_JOBS = 50


@dataclass
class JobRecord:
    job_id: str
    files: List[Tuple[str, str]]  # (file name, temp path)
    options: ProcessingOptions
    status: JobStatus = "pending"
    stage: str = "queued"
    detail: Optional[str] = None
    processed_pages: int = 0
    total_pages: int = 0
    result: Optional[ProcessingResult] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def read_inputs(self) -> List[Tuple[str, bytes]]:
        inputs: List[Tuple[str, bytes]] = []
        for name, path in self.files:
            with open(path, "rb") as stream:
                inputs.append((name, stream.read()))
        return inputs


class JobHandle:
    def __init__(self, manager: "JobManager", job_id: str):
        self._manager = manager
        self.job_id = job_id

    def update(self, **fields) -> None:
        self._manager._update(self.job_id, **fields)


ProcessorFunc = Callable[[JobRecord, JobHandle], None]


class JobManager:
    def __init__(self, processor: ProcessorFunc, *, max_finished_jobs: int = MAX_FINISHED_JOBS) -> None:
        self._processor = processor
        self._max_finished_jobs = max(0, max_finished_jobs)
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def submit(self, files: Sequence[Tuple[str, bytes]], options: ProcessingOptions) -> JobRecord:
        stored: List[Tuple[str, str]] = []
        for name, payload in files:
            temp = tempfile.NamedTemporaryFile(delete=False, suffix=".pdf")
            temp.write(payload)
            temp.flush()
            temp.close()
            stored.append((name, temp.name))
        job_id = uuid.uuid4().hex
        record = JobRecord(job_id=job_id, files=stored, options=options)
        with self._lock:
            self._evict_finished()
            self._jobs[job_id] = record
        thread = threading.Thread(target=self._run_job, args=(job_id,), daemon=True)
        thread.start()
        return record

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self._jobs.get(job_id)

    def cancel(self, job_id: str) -> Optional[JobRecord]:
        """Ask a job to stop. It stops between two stages or two pages, not mid-page."""
        record = self.get(job_id)
        if record and record.status in {"pending", "running"}:
            record.cancel_event.set()
            logger.info("Cancellation requested for job %s", job_id)
        return record

    def _run_job(self, job_id: str) -> None:
        record = self.get(job_id)
        if not record:
            return
        handle = JobHandle(self, job_id)
        handle.update(status="running", stage="queued")
        try:
            self._processor(record, handle)
        except PartitionCancelledError as exc:
            handle.update(status="cancelled", stage="cancelled", detail=str(exc), result=None)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job %s failed", job_id)
            handle.update(status="failed", stage="failed", detail=str(exc))
        finally:
            for _, path in record.files:
                if path and os.path.exists(path):
                    os.remove(path)

    def _evict_finished(self) -> None:
        # Caller holds the lock.
        finished = sorted(
            (job for job in self._jobs.values() if job.status in FINISHED_STATUSES),
            key=lambda job: job.updated_at,
        )
        excess = len(finished) - self._max_finished_jobs
        for job in finished[: max(0, excess)]:
            del self._jobs[job.job_id]
            logger.info("Evicted finished job %s (%s)", job.job_id, job.status)

    def _update(self, job_id: str, **fields) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return
            for key, value in fields.items():
                if hasattr(job, key):
                    setattr(job, key, value)
            job.updated_at = time.time()
