import os
import threading
import time

from backend.flexipdf.job_manager import JobManager
from backend.flexipdf.pipeline import ProcessingOptions, process_documents
from backend.flexipdf.reducer import CompressionLevel
from backend.flexipdf.splitter import PartitionCancelledError

from pdf_samples import build_pdf


def wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise AssertionError("condition not reached")


def test_completed_job_cleans_up_temp_files() -> None:
    seen: dict = {}

    def processor(job, handle) -> None:
        seen["inputs"] = job.read_inputs()
        handle.update(status="completed", stage="completed")

    manager = JobManager(processor)
    record = manager.submit([("a.pdf", b"one"), ("b.pdf", b"two")], ProcessingOptions())

    wait_until(lambda: manager.get(record.job_id).status == "completed")
    assert seen["inputs"] == [("a.pdf", b"one"), ("b.pdf", b"two")]
    wait_until(lambda: not any(os.path.exists(path) for _, path in record.files))


def test_failing_job_is_marked_failed() -> None:
    def processor(job, handle) -> None:
        raise ValueError("boom")

    manager = JobManager(processor)
    record = manager.submit([("a.pdf", b"x")], ProcessingOptions())

    wait_until(lambda: manager.get(record.job_id).status == "failed")
    assert manager.get(record.job_id).detail == "boom"


def test_cancel_stops_running_job() -> None:
    started = threading.Event()

    def processor(job, handle) -> None:
        started.set()
        if job.cancel_event.wait(timeout=5):
            raise PartitionCancelledError("Split was cancelled")
        handle.update(status="completed")

    manager = JobManager(processor)
    record = manager.submit([("a.pdf", b"x")], ProcessingOptions())
    assert started.wait(timeout=5)

    manager.cancel(record.job_id)

    wait_until(lambda: manager.get(record.job_id).status == "cancelled")


def test_unknown_job() -> None:
    manager = JobManager(lambda job, handle: None)
    assert manager.get("missing") is None
    assert manager.cancel("missing") is None


def test_cancel_during_compression_ends_cancelled_without_split() -> None:
    manager: JobManager

    def processor(job, handle) -> None:
        def on_stage(stage: str, detail: str) -> None:
            handle.update(stage=stage, detail=detail)
            if stage == "compressing":
                manager.cancel(job.job_id)

        result = process_documents(
            job.read_inputs(),
            job.options,
            stage_callback=on_stage,
            cancel_event=job.cancel_event,
        )
        handle.update(status="completed", stage="completed", result=result)

    manager = JobManager(processor)
    record = manager.submit(
        [("report.pdf", build_pdf([2_000, 2_000]))],
        ProcessingOptions(level=CompressionLevel.MEDIUM),
    )

    wait_until(lambda: manager.get(record.job_id).status in {"completed", "cancelled", "failed"})
    job = manager.get(record.job_id)
    assert job.status == "cancelled"
    assert job.result is None


def test_old_finished_jobs_are_evicted() -> None:
    def processor(job, handle) -> None:
        handle.update(status="completed", stage="completed")

    manager = JobManager(processor, max_finished_jobs=1)
    first = manager.submit([("a.pdf", b"x")], ProcessingOptions())
    wait_until(lambda: manager.get(first.job_id).status == "completed")
    time.sleep(0.01)
    second = manager.submit([("b.pdf", b"x")], ProcessingOptions())
    wait_until(lambda: manager.get(second.job_id).status == "completed")

    third = manager.submit([("c.pdf", b"x")], ProcessingOptions())

    assert manager.get(first.job_id) is None
    assert manager.get(second.job_id) is not None
    assert manager.get(third.job_id) is not None


def test_running_jobs_are_never_evicted() -> None:
    release = threading.Event()

    def processor(job, handle) -> None:
        release.wait(timeout=5)
        handle.update(status="completed", stage="completed")

    manager = JobManager(processor, max_finished_jobs=0)
    first = manager.submit([("a.pdf", b"x")], ProcessingOptions())
    second = manager.submit([("b.pdf", b"x")], ProcessingOptions())

    assert manager.get(first.job_id) is not None
    assert manager.get(second.job_id) is not None
    release.set()
