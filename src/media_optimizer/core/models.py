"""Shared data models for the media optimizer."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FileMetadata(BaseModel):
    """A file record as stored by the file service or carried by an upload event.

    Unknown keys are kept so that a commit writes back everything the
    storage backend had, not just the fields this package cares about.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    filesize: Optional[int] = None
    filename_disk: Optional[str] = None
    filename_download: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    optimized: bool = False


class UploadEvent(BaseModel):
    """An "asset uploaded" notification."""

    key: str
    payload: FileMetadata = Field(default_factory=FileMetadata)


@dataclass
class ServiceHandles:
    """Storage and transformation collaborators bound to one request."""

    assets: Any
    files: Any


@dataclass
class WorkItem:
    """One file's pending optimization request."""

    file_key: str
    payload: FileMetadata
    services: Optional[ServiceHandles] = None


class WatermarkEntry(BaseModel):
    """A catalog entry as written in configuration."""

    filename: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class WatermarkSpec(BaseModel):
    """A watermark asset with known pixel dimensions."""

    model_config = ConfigDict(frozen=True)

    filename: str
    width: int
    height: int
    path: str

    @property
    def area(self) -> int:
        return self.width * self.height


class CompositeOperation(BaseModel):
    """Overlay of one image onto the transformed output."""

    model_config = ConfigDict(frozen=True)

    input_path: str
    gravity: str = "center"
    blend: str = "over"


class TransformationPlan(BaseModel):
    """Instructions handed to the transformation engine for one file."""

    model_config = ConfigDict(frozen=True)

    output_format: str
    quality: int = Field(ge=0, le=100)
    max_width: int = Field(gt=0)
    max_height: int = Field(gt=0)
    fit: str = "inside"
    without_enlargement: bool = True
    keep_metadata: bool = True
    composites: Tuple[CompositeOperation, ...] = ()


class AssetStat(BaseModel):
    """Measured properties of a transformation output."""

    width: int
    height: int
    size: int


class TransformedAsset(BaseModel):
    """Bytes produced by the transformation engine plus their stat."""

    content: bytes
    stat: AssetStat


class OutcomeStatus(str, Enum):
    """Terminal state of one work item in the optimization worker."""

    COMMITTED = "committed"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"
    INVALID = "invalid"
    ALREADY_OPTIMIZED = "already_optimized"
    FAILED = "failed"


class ProcessingOutcome(BaseModel):
    """Result of processing a single work item."""

    file_key: str
    status: OutcomeStatus
    committed: bool = False
    final_width: Optional[int] = None
    final_height: Optional[int] = None
    final_byte_size: Optional[int] = None
    new_filename: Optional[str] = None
    error: str = ""
    processing_time: float = 0.0


class ThumbnailResult(BaseModel):
    """Outcome of regenerating one preset in one format."""

    preset: str
    mime_type: str
    success: bool = False
    attempts: int = 0
    content_type: str = ""
    error: str = ""


class VerificationReport(BaseModel):
    """Everything the thumbnail verifier observed for one committed file."""

    file_key: str
    ready: bool = False
    thumbnails: List[ThumbnailResult] = Field(default_factory=list)

    @property
    def failed(self) -> List[ThumbnailResult]:
        return [result for result in self.thumbnails if not result.success]


class PipelineConfig(BaseModel):
    """Configuration for the optimization pipeline."""

    max_size: int = Field(default=1920, gt=0)
    quality: int = Field(default=75, ge=0, le=100)
    output_format: str = "avif"

    watermark_path: str = "watermarks"
    watermarks: List[WatermarkEntry] = Field(default_factory=list)

    thumbnail_base_url: str = "http://localhost:8055/assets"
    thumbnail_presets: List[str] = Field(default_factory=list)
    thumbnail_formats: List[str] = Field(
        default_factory=lambda: ["image/avif", "image/webp"]
    )
    thumbnail_timeout: float = Field(default=10.0, gt=0)
    thumbnail_retry_attempts: int = Field(default=3, ge=1)
    thumbnail_backoff: float = Field(default=0.5, ge=0)
    thumbnail_error_backoff: float = Field(default=2.0, ge=0)

    readiness_attempts: int = Field(default=10, ge=1)
    readiness_interval: float = Field(default=1.0, ge=0)

    throttle_min_seconds: float = Field(default=0.5, ge=0)
    throttle_max_seconds: float = Field(default=4.0, ge=0)
    throttle_seconds_per_megabyte: float = Field(default=1.0, ge=0)

    queue_pacing_delay: float = Field(default=0.0, ge=0)

    s3_bucket: Optional[str] = None
    s3_prefix: str = ""
    debug: bool = False
