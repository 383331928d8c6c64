"""Output file naming for processed documents."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

PDF_SUFFIX = ".pdf"
DEFAULT_MERGED_BASE_NAME = "Documento_Unito"

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


@dataclass(frozen=True)
class PartResult:
    data: bytes
    name: str

    @property
    def size(self) -> int:
        return len(self.data)


def strip_pdf_suffix(base_name: str) -> str:
    if base_name.endswith(PDF_SUFFIX):
        return base_name[: -len(PDF_SUFFIX)]
    return base_name


def name_parts(parts: Sequence[bytes], base_name: str) -> List[PartResult]:
    """Attach output names to serialized parts.

    A lone part is called ``{base_name}.pdf``. Several parts are numbered
    from 1 with three digits (``report_001.pdf``); past 999 the number simply
    grows to four digits.
    """

    if len(parts) == 1:
        return [PartResult(data=parts[0], name=f"{base_name}{PDF_SUFFIX}")]
    stem = strip_pdf_suffix(base_name)
    return [
        PartResult(data=data, name=f"{stem}_{index:03d}{PDF_SUFFIX}")
        for index, data in enumerate(parts, start=1)
    ]


def default_base_name(
    file_names: Sequence[str],
    *,
    merge: bool,
    merged_name: str = DEFAULT_MERGED_BASE_NAME,
    requested: Optional[str] = None,
) -> str:
    """Pick the base output name.

    An explicit, non-blank ``requested`` name wins. Otherwise a request with
    the merge flag on uses ``merged_name``, even for a single file, and
    anything else uses the first file name without its extension.
    """

    if requested and requested.strip():
        return requested.strip()
    if merge:
        return merged_name
    if not file_names:
        return merged_name
    return _EXTENSION_RE.sub("", file_names[0]) or merged_name
