"""Split a PDF into sequential parts that each fit a byte budget."""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from numbers import Real
from typing import Callable, List, Optional, Tuple

from pypdf import PdfReader

from .pdf_utils import (
    PdfProcessingError,
    add_page,
    copy_pages,
    create_document,
    load_document,
    page_count,
    save_document,
)

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

ProgressCallback = Callable[[int, int], None]


class InvalidBudgetError(PdfProcessingError, ValueError):
    """Raised when the size budget is not a positive, finite number."""


class PartitionCancelledError(PdfProcessingError):
    """Raised when a split is cancelled between two pages."""


@dataclass(frozen=True)
class Partition:
    page_indices: Tuple[int, ...]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def page_count(self) -> int:
        return len(self.page_indices)


def validate_budget(budget_bytes) -> float:
    if isinstance(budget_bytes, bool) or not isinstance(budget_bytes, Real):
        raise InvalidBudgetError(f"Size budget must be a number, got {budget_bytes!r}")
    if not math.isfinite(budget_bytes) or budget_bytes <= 0:
        raise InvalidBudgetError(f"Size budget must be positive and finite, got {budget_bytes!r}")
    return float(budget_bytes)


def target_mb_to_bytes(target_mb) -> float:
    """Convert a target size in MB (number or numeric string) to bytes."""

    if isinstance(target_mb, str):
        try:
            target_mb = float(target_mb.strip().replace(",", "."))
        except ValueError as exc:
            raise InvalidBudgetError(f"Target size is not a number: {target_mb!r}") from exc
    if isinstance(target_mb, bool) or not isinstance(target_mb, Real):
        raise InvalidBudgetError(f"Target size must be a number, got {target_mb!r}")
    return validate_budget(target_mb * BYTES_PER_MB)


def _serialize_pages(source: PdfReader, indices: List[int], producer: Optional[str]) -> bytes:
    # Compaction rewrites a writer in place, so every measurement starts from
    # a fresh document instead of growing one that was already compacted.
    document = create_document(producer=producer)
    for page in copy_pages(source, indices):
        add_page(document, page)
    return save_document(document, compaction=True)


def partition_document(
    source: PdfReader,
    budget_bytes: float,
    *,
    producer: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[Partition]:
    """Assign pages, left to right, to partitions that fit ``budget_bytes``.

    Sizes are measured by serializing real documents: each page alone in a
    throwaway document, and the partition being built as it stands. A
    partition is closed *before* a page is added when the two sizes together
    exceed the budget, and the bytes measured for it become its final
    output, so each page costs two serializations.

    A page that is larger than the budget on its own still gets a partition
    of its own. Zero pages give an empty list.

    Raises:
        InvalidBudgetError: If the budget is not positive and finite.
        PartitionCancelledError: If ``cancel_event`` is set between two pages.
    """

    budget = validate_budget(budget_bytes)
    total_pages = page_count(source)
    partitions: List[Partition] = []

    current_indices: List[int] = []

    def close_current(data: bytes) -> None:
        partitions.append(Partition(page_indices=tuple(current_indices), data=data))
        if len(current_indices) == 1 and len(data) > budget:
            logger.warning(
                "Page %s alone is %s bytes, above the %.0f byte budget; emitting it as its own part",
                current_indices[0] + 1,
                len(data),
                budget,
            )

    for index in range(total_pages):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Split cancelled before page %s of %s", index + 1, total_pages)
            raise PartitionCancelledError("Split was cancelled")

        page_bytes = len(_serialize_pages(source, [index], producer))

        if current_indices:
            current_data = _serialize_pages(source, current_indices, producer)
            if len(current_data) + page_bytes > budget:
                close_current(current_data)
                current_indices = []

        current_indices.append(index)

        if progress_callback:
            progress_callback(index + 1, total_pages)

    if current_indices:
        close_current(_serialize_pages(source, current_indices, producer))

    logger.info(
        "Split %s pages into %s parts with a %.0f byte budget",
        total_pages,
        len(partitions),
        budget,
    )
    return partitions


def split_pdf_by_size(
    payload: bytes,
    budget_bytes: float,
    *,
    producer: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[bytes]:
    """Split raw PDF bytes and return each part's bytes in page order."""

    validate_budget(budget_bytes)
    source = load_document(payload)
    partitions = partition_document(
        source,
        budget_bytes,
        producer=producer,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
    )
    return [partition.data for partition in partitions]
