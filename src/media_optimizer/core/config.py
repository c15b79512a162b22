"""Environment-driven configuration loading."""

import os
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import PipelineConfig, WatermarkEntry
from .planner import OUTPUT_FORMATS, canonical_format

ENV_PREFIX = "MEDIA_OPTIMIZER_"

# env suffix -> PipelineConfig field
_SCALAR_FIELDS = {
    "MAX_SIZE": "max_size",
    "QUALITY": "quality",
    "OUTPUT_FORMAT": "output_format",
    "WATERMARK_PATH": "watermark_path",
    "THUMBNAIL_BASE_URL": "thumbnail_base_url",
    "THUMBNAIL_TIMEOUT": "thumbnail_timeout",
    "THUMBNAIL_RETRIES": "thumbnail_retry_attempts",
    "THUMBNAIL_BACKOFF": "thumbnail_backoff",
    "THUMBNAIL_ERROR_BACKOFF": "thumbnail_error_backoff",
    "READINESS_ATTEMPTS": "readiness_attempts",
    "READINESS_INTERVAL": "readiness_interval",
    "THROTTLE_MIN": "throttle_min_seconds",
    "THROTTLE_MAX": "throttle_max_seconds",
    "THROTTLE_PER_MB": "throttle_seconds_per_megabyte",
    "QUEUE_PACING": "queue_pacing_delay",
    "S3_BUCKET": "s3_bucket",
    "S3_PREFIX": "s3_prefix",
    "DEBUG": "debug",
}

_LIST_FIELDS = {
    "THUMBNAIL_PRESETS": "thumbnail_presets",
    "THUMBNAIL_FORMATS": "thumbnail_formats",
}


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_watermarks(value: str) -> List[WatermarkEntry]:
    """
    Parse a watermark catalog of the form ``name.png:WxH,other.png:WxH``.

    Args:
        value: Raw catalog string

    Returns:
        Catalog entries in the order given

    Raises:
        ConfigurationError: If an entry is malformed
    """
    entries = []
    for raw in _split_list(value):
        filename, sep, size = raw.rpartition(":")
        width, x, height = size.lower().partition("x")
        if not sep or not filename or not x:
            raise ConfigurationError(f"Invalid watermark entry: {raw!r}")
        try:
            entries.append(
                WatermarkEntry(filename=filename, width=int(width), height=int(height))
            )
        except (ValueError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid watermark entry: {raw!r}") from exc
    return entries


def load_config(
    environ: Optional[Mapping[str, str]] = None, **overrides: Any
) -> PipelineConfig:
    """
    Build the pipeline configuration from ``MEDIA_OPTIMIZER_*`` variables.

    Keyword overrides win over the environment.

    Raises:
        ConfigurationError: If any value fails validation
    """
    if environ is None:
        environ = os.environ

    values: Dict[str, Any] = {}
    for suffix, field_name in _SCALAR_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw not in (None, ""):
            values[field_name] = raw
    for suffix, field_name in _LIST_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is not None:
            values[field_name] = _split_list(raw)

    raw_watermarks = environ.get(ENV_PREFIX + "WATERMARKS")
    if raw_watermarks:
        values["watermarks"] = parse_watermarks(raw_watermarks)

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = PipelineConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    if config.throttle_min_seconds > config.throttle_max_seconds:
        raise ConfigurationError("throttle minimum exceeds throttle maximum")

    output_format = canonical_format(config.output_format)
    if output_format is None:
        raise ConfigurationError(
            f"Unsupported output format {config.output_format!r}, "
            f"expected one of {sorted(OUTPUT_FORMATS)}"
        )
    if output_format != config.output_format:
        config = config.model_copy(update={"output_format": output_format})
    return config
