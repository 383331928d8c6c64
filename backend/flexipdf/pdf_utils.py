"""Thin adapter around pypdf used by every processing stage."""
from __future__ import annotations

from io import BytesIO
from typing import Iterable, List, Optional, Union

from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.errors import PyPdfError

Document = Union[PdfReader, PdfWriter]


class PdfProcessingError(RuntimeError):
    """Base class for errors raised while handling PDF documents."""


class LoadError(PdfProcessingError):
    """Raised when bytes cannot be parsed, or re-serialized, as a PDF."""


class ResourceExhaustionError(PdfProcessingError):
    """Raised when the codec runs out of memory on a large document."""


def load_document(payload: bytes, *, source_name: Optional[str] = None) -> PdfReader:
    """Parse ``payload`` into a reader.

    The page tree is resolved eagerly so that a broken file fails here and not
    halfway through a later stage. Encrypted files are opened with the empty
    user password when they allow it.
    """

    label = source_name or "document"
    if not payload:
        raise LoadError(f"{label} is empty")
    try:
        reader = PdfReader(BytesIO(payload))
        if reader.is_encrypted and not reader.decrypt(""):
            raise LoadError(f"{label} is password protected")
        len(reader.pages)
    except MemoryError as exc:
        raise ResourceExhaustionError(f"Not enough memory to load {label}") from exc
    except (PyPdfError, ValueError) as exc:
        raise LoadError(f"{label} is not a valid PDF: {exc}") from exc
    return reader


def create_document(*, producer: Optional[str] = None) -> PdfWriter:
    writer = PdfWriter()
    if producer:
        writer.add_metadata({"/Producer": producer})
    return writer


def copy_pages(source: Document, indices: Iterable[int]) -> List[PageObject]:
    return [source.pages[index] for index in indices]


def add_page(target: PdfWriter, page: PageObject) -> None:
    target.add_page(page)


def page_count(document: Document) -> int:
    return len(document.pages)


def save_document(document: PdfWriter, *, compaction: bool = True) -> bytes:
    """Serialize ``document``.

    With ``compaction`` enabled identical objects (shared fonts, images) are
    merged and unreachable ones dropped before writing.
    """

    buffer = BytesIO()
    try:
        if compaction and page_count(document) > 0:
            # Merges identical objects and drops orphans; both are the defaults.
            document.compress_identical_objects()
        document.write(buffer)
    except MemoryError as exc:
        raise ResourceExhaustionError("Not enough memory to serialize the document") from exc
    except (PyPdfError, ValueError) as exc:
        raise LoadError(f"Document could not be serialized: {exc}") from exc
    return buffer.getvalue()


def measure_document(document: PdfWriter, *, compaction: bool = True) -> int:
    return len(save_document(document, compaction=compaction))
