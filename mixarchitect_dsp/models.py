"""Pydantic request/response models for the analysis service."""

from typing import List, Literal, Optional

from pydantic import BaseModel


class AudioMetadataResponse(BaseModel):
    measured_lufs: Optional[float]
    sample_rate: int
    bit_depth: Optional[int]
    file_format: str
    channels: int
    duration_seconds: float


class NormalizationOffset(BaseModel):
    name: str
    group: str
    target_lufs: float
    gain_db: float


class AnalysisResponse(BaseModel):
    metadata: AudioMetadataResponse
    reference_delta: Optional[float] = None
    normalization: List[NormalizationOffset] = []


class AnalyzeVersionRequest(BaseModel):
    audio_url: str
    file_name: Optional[str] = None
    track_id: Optional[str] = None
    force: bool = False


class AnalyzeVersionResponse(BaseModel):
    status: Literal["analyzed", "skipped"]
    version_id: str
    metadata: Optional[AudioMetadataResponse] = None
