"""Pydantic models for document processing endpoints."""
from __future__ import annotations

import base64
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .naming import PartResult
from .pipeline import ProcessingResult
from .reducer import CompressionLevel


class PartPayload(BaseModel):
    name: str
    size: int
    content: str = Field(description="Base64 encoded PDF bytes")

    @classmethod
    def from_part(cls, part: PartResult) -> "PartPayload":
        return cls(
            name=part.name,
            size=part.size,
            content=base64.b64encode(part.data).decode("ascii"),
        )


class ProcessResponse(BaseModel):
    status: Literal["ok"]
    compression_level: CompressionLevel
    merged: bool
    split: bool
    original_size: int
    total_size: int
    reduction_ratio: float
    parts: List[PartPayload]

    @classmethod
    def from_result(cls, result: ProcessingResult) -> "ProcessResponse":
        return cls(
            status="ok",
            compression_level=result.level,
            merged=result.merged,
            split=result.split,
            original_size=result.original_size,
            total_size=result.total_size,
            reduction_ratio=round(result.reduction_ratio, 4),
            parts=[PartPayload.from_part(part) for part in result.parts],
        )


class ProviderLimit(BaseModel):
    name: str
    limit_mb: float
    suggested_target_mb: float


class LimitsResponse(BaseModel):
    default_target_mb: float
    default_compression_level: CompressionLevel
    max_upload_mb: float
    compression_levels: List[CompressionLevel]
    providers: List[ProviderLimit]


class JobCreateResponse(BaseModel):
    status: Literal["accepted"]
    job_id: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: Literal["pending", "running", "completed", "failed", "cancelled"]
    stage: Optional[str] = None
    detail: Optional[str] = None
    processed_pages: Optional[int] = None
    total_pages: Optional[int] = None
    created_at: float
    updated_at: float
