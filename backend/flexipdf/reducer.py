"""Size reduction by re-serializing a document with compaction enabled.

Known limitation: the compression level is accepted and carried through to
the result, but every level currently runs the same copy-and-compact pass.
No image downsampling or font subsetting happens at any level, so LOW and
HIGH produce the same bytes. The level is kept on the interface so that
content-level recompression can be added without changing callers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .pdf_utils import add_page, copy_pages, create_document, load_document, page_count, save_document

logger = logging.getLogger(__name__)


class CompressionLevel(str, Enum):
    """User facing compression dial."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    TARGET = "target"      # compress, then split to a target size

    @classmethod
    def parse(cls, value: Union["CompressionLevel", str]) -> "CompressionLevel":
        if isinstance(value, cls):
            return value
        token = str(value or "").strip().lower()
        for level in cls:
            if token in {level.value, level.name.lower()}:
                return level
        legacy = _LEGACY_LABELS.get(token)
        if legacy is not None:
            return legacy
        raise ValueError(f"Unsupported compression level: {value!r}")


# Labels used by the original Italian UI.
_LEGACY_LABELS = {
    "minima": CompressionLevel.LOW,
    "media": CompressionLevel.MEDIUM,
    "massima": CompressionLevel.HIGH,
    "personalizzata": CompressionLevel.TARGET,
}


@dataclass(frozen=True)
class ReducedDocument:
    data: bytes
    level: CompressionLevel
    page_count: int

    @property
    def size(self) -> int:
        return len(self.data)


def reduce_document(
    payload: bytes,
    level: Union[CompressionLevel, str] = CompressionLevel.MEDIUM,
    *,
    producer: Optional[str] = None,
    source_name: Optional[str] = None,
) -> ReducedDocument:
    """Rebuild ``payload`` page by page and save it compacted.

    The result is never larger than the input: when re-serialization does not
    pay off the original bytes are returned as they are.
    """

    level = CompressionLevel.parse(level)
    source = load_document(payload, source_name=source_name)
    rebuilt = create_document(producer=producer)
    for page in copy_pages(source, range(page_count(source))):
        add_page(rebuilt, page)
    data = save_document(rebuilt, compaction=True)

    if len(data) > len(payload):
        logger.info(
            "Re-serialized output is larger (%s > %s bytes); keeping the input as is",
            len(data),
            len(payload),
        )
        data = payload
    logger.info(
        "Reduced %s (level=%s): %s -> %s bytes",
        source_name or "document",
        level.value,
        len(payload),
        len(data),
    )
    return ReducedDocument(data=data, level=level, page_count=page_count(source))
