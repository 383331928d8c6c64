"""Attachment size limits of common e-mail providers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

# Keep a margin under the provider limit for MIME encoding overhead.
SAFETY_MARGIN = 0.95


@dataclass(frozen=True)
class EmailProvider:
    name: str
    limit_mb: float

    @property
    def suggested_target_mb(self) -> float:
        return suggested_target_mb(self.limit_mb)


EMAIL_PROVIDERS: Tuple[EmailProvider, ...] = (
    EmailProvider("Gmail", 25),
    EmailProvider("Outlook", 20),
    EmailProvider("iCloud", 20),
    EmailProvider("Yahoo", 25),
    EmailProvider("Libero", 25),
    EmailProvider("Virgilio", 25),
)


def suggested_target_mb(limit_mb: float) -> float:
    return round(limit_mb * SAFETY_MARGIN, 1)


def find_provider(name: str) -> Optional[EmailProvider]:
    token = (name or "").strip().lower()
    for provider in EMAIL_PROVIDERS:
        if provider.name.lower() == token:
            return provider
    return None
