"""Concatenate several PDF documents into one working document."""
from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from pypdf import PdfReader, PdfWriter

from .pdf_utils import add_page, copy_pages, create_document, load_document, page_count

logger = logging.getLogger(__name__)


class EmptyMergeError(ValueError):
    """Raised when a merge is requested without any source document."""


def merge_documents(sources: Sequence[PdfReader], *, producer: Optional[str] = None) -> PdfWriter:
    """Copy every page of ``sources``, in order, into a new document.

    Sources with no pages are allowed and contribute nothing. The sources
    themselves are left untouched.
    """

    if not sources:
        raise EmptyMergeError("At least one document is required to merge")

    merged = create_document(producer=producer)
    for source in sources:
        for page in copy_pages(source, range(page_count(source))):
            add_page(merged, page)
    logger.info("Merged %s documents into %s pages", len(sources), page_count(merged))
    return merged


def merge_pdf_bytes(
    payloads: Sequence[Tuple[str, bytes]],
    *,
    producer: Optional[str] = None,
) -> PdfWriter:
    """Load ``(file_name, payload)`` pairs and merge them.

    Every payload is parsed before any page is copied, so one broken file
    aborts the whole merge.
    """

    if not payloads:
        raise EmptyMergeError("At least one document is required to merge")
    readers = [load_document(payload, source_name=name) for name, payload in payloads]
    return merge_documents(readers, producer=producer)
