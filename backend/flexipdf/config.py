"""Application settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from .naming import DEFAULT_MERGED_BASE_NAME
from .reducer import CompressionLevel

_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


@dataclass(frozen=True)
class Settings:
    default_target_mb: float
    default_compression_level: CompressionLevel
    merged_base_name: str
    producer: str
    max_upload_bytes: int
    cors_allow_origins: tuple[str, ...]


def _positive_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"Environment variable {name} must be positive, got {raw!r}")
    return value


@lru_cache()
def get_settings() -> Settings:
    try:
        level = CompressionLevel.parse(os.getenv("FLEXI_DEFAULT_COMPRESSION_LEVEL", "medium"))
    except ValueError as exc:
        raise RuntimeError(str(exc)) from exc

    max_upload_mb = _positive_float("FLEXI_MAX_UPLOAD_MB", "200")

    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "*")
    origins = tuple(origin.strip() for origin in origins_env.split(",") if origin.strip())

    return Settings(
        default_target_mb=_positive_float("FLEXI_DEFAULT_TARGET_MB", "2.5"),
        default_compression_level=level,
        merged_base_name=os.getenv("FLEXI_MERGED_BASE_NAME", DEFAULT_MERGED_BASE_NAME).strip()
        or DEFAULT_MERGED_BASE_NAME,
        producer=os.getenv("FLEXI_PRODUCER", "Flexi Compress Engine"),
        max_upload_bytes=int(max_upload_mb * 1024 * 1024),
        cors_allow_origins=origins or ("*",),
    )
