"""Core components of the media optimizer pipeline."""

from .logging_config import get_logger, setup_logger
from .exceptions import (
    MediaOptimizerError,
    ConfigurationError,
    StorageError,
    UnsupportedTypeSkip,
    InvalidDimensions,
    TransformationFailure,
    CommitFailure,
    ReadinessTimeout,
    ThumbnailFormatMismatch,
    ThumbnailRequestError,
    QueueClosedError,
    errors_as,
)
from .models import (
    FileMetadata,
    UploadEvent,
    ServiceHandles,
    WorkItem,
    WatermarkEntry,
    WatermarkSpec,
    CompositeOperation,
    TransformationPlan,
    AssetStat,
    TransformedAsset,
    OutcomeStatus,
    ProcessingOutcome,
    ThumbnailResult,
    VerificationReport,
    PipelineConfig,
)
from .config import load_config
from .dimensions import resize
from .watermarks import WatermarkCatalog, WatermarkSelector
from .planner import build_plan, canonical_format, is_supported_type, output_mime_type
from .error_handling import RetryOutcome, backoff_delay, retry_async

__all__ = [
    "get_logger",
    "setup_logger",
    "MediaOptimizerError",
    "ConfigurationError",
    "StorageError",
    "UnsupportedTypeSkip",
    "InvalidDimensions",
    "TransformationFailure",
    "CommitFailure",
    "ReadinessTimeout",
    "ThumbnailFormatMismatch",
    "ThumbnailRequestError",
    "QueueClosedError",
    "errors_as",
    "FileMetadata",
    "UploadEvent",
    "ServiceHandles",
    "WorkItem",
    "WatermarkEntry",
    "WatermarkSpec",
    "CompositeOperation",
    "TransformationPlan",
    "AssetStat",
    "TransformedAsset",
    "OutcomeStatus",
    "ProcessingOutcome",
    "ThumbnailResult",
    "VerificationReport",
    "PipelineConfig",
    "load_config",
    "resize",
    "WatermarkCatalog",
    "WatermarkSelector",
    "build_plan",
    "is_supported_type",
    "output_mime_type",
    "canonical_format",
    "RetryOutcome",
    "backoff_delay",
    "retry_async",
]
