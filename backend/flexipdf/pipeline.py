"""End-to-end processing: merge, reduce, split and name."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .merger import merge_documents
from .naming import DEFAULT_MERGED_BASE_NAME, PartResult, default_base_name, name_parts
from .pdf_utils import load_document, save_document
from .reducer import CompressionLevel, reduce_document
from .splitter import PartitionCancelledError, ProgressCallback, partition_document, target_mb_to_bytes

logger = logging.getLogger(__name__)

StageCallback = Callable[[str, str], None]
InputFile = Tuple[str, bytes]


@dataclass(frozen=True)
class ProcessingOptions:
    level: Union[CompressionLevel, str] = CompressionLevel.MEDIUM
    target_mb: Union[float, str] = 2.5
    merge: bool = False
    base_name: Optional[str] = None


@dataclass
class ProcessingResult:
    parts: List[PartResult]
    original_size: int
    level: CompressionLevel
    merged: bool = False
    split: bool = False
    budget_bytes: float = 0.0
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total_size(self) -> int:
        return sum(part.size for part in self.parts)

    @property
    def reduction_ratio(self) -> float:
        """Share of the original size saved, 0.0 when nothing was saved."""
        if self.original_size <= 0:
            return 0.0
        return max(0.0, 1.0 - self.total_size / self.original_size)


def process_documents(
    inputs: Sequence[InputFile],
    options: ProcessingOptions,
    *,
    producer: Optional[str] = None,
    merged_base_name: str = DEFAULT_MERGED_BASE_NAME,
    stage_callback: Optional[StageCallback] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    run_id: Optional[str] = None,
) -> ProcessingResult:
    """Run one processing request.

    ``inputs`` are ``(file_name, payload)`` pairs in the order the user
    arranged them. The size budget is validated before any document is
    touched, and every input is parsed before work starts, so a bad budget or
    a broken file fails the whole request with no partial output.

    Splitting only happens with ``CompressionLevel.TARGET`` and only when
    the reduced document is strictly larger than the budget.

    ``cancel_event`` is checked after every stage and between pages while
    splitting; a cancelled run raises ``PartitionCancelledError`` and returns
    nothing.
    """

    if not inputs:
        raise ValueError("No documents to process")
    run_id = run_id or uuid.uuid4().hex
    level = CompressionLevel.parse(options.level)
    budget = target_mb_to_bytes(options.target_mb)
    file_names = [name for name, _ in inputs]
    base_name = default_base_name(
        file_names,
        merge=options.merge,
        merged_name=merged_base_name,
        requested=options.base_name,
    )
    original_size = sum(len(payload) for _, payload in inputs)

    def report(stage: str, detail: str) -> None:
        if stage_callback:
            stage_callback(stage, detail)

    run_timer = time.perf_counter()
    report("loading", f"Reading {len(inputs)} file(s)")
    readers = [load_document(payload, source_name=name) for name, payload in inputs]
    _check_cancelled(cancel_event, "loading")

    merged = options.merge and len(inputs) > 1
    if merged:
        report("merging", f"Merging {len(inputs)} files")
        stage_timer = time.perf_counter()
        working = save_document(merge_documents(readers, producer=producer), compaction=True)
        _log_timing(run_id, "MERGE", 0, stage_timer)
    else:
        if len(inputs) > 1:
            logger.warning(
                "Merge is off; processing only %s and ignoring %s other file(s)",
                inputs[0][0],
                len(inputs) - 1,
            )
        working = inputs[0][1]
    _check_cancelled(cancel_event, "merging")

    report("compressing", f"Optimizing structure (level={level.value})")
    stage_timer = time.perf_counter()
    reduced = reduce_document(working, level, producer=producer, source_name=base_name)
    _log_timing(run_id, "REDUCE", 0, stage_timer)
    _check_cancelled(cancel_event, "compressing")

    split = level is CompressionLevel.TARGET and reduced.size > budget and reduced.page_count > 0
    if split:
        report("splitting", f"Splitting {reduced.page_count} pages into parts of at most {options.target_mb} MB")
        stage_timer = time.perf_counter()
        partitions = partition_document(
            load_document(reduced.data, source_name=base_name),
            budget,
            producer=producer,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
        )
        _log_timing(run_id, "SPLIT", reduced.page_count, stage_timer)
        parts = name_parts([partition.data for partition in partitions], base_name)
    else:
        parts = name_parts([reduced.data], base_name)

    _log_timing(run_id, "RUN_TOTAL", 0, run_timer)
    return ProcessingResult(
        parts=parts,
        original_size=original_size,
        level=level,
        merged=merged,
        split=split,
        budget_bytes=budget,
        run_id=run_id,
    )


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Run cancelled after the %s stage", stage)
        raise PartitionCancelledError(f"Processing was cancelled during {stage}")

def _log_timing(run_id: str, component: str, page: int, start_ts: float) -> None:
    duration_ms = (time.perf_counter() - start_ts) * 1000.0
    logger.info("TIMING|%s|%s|%s|%.2f", run_id, component, page, duration_ms)
