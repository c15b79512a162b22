"""Factory classes for creating configured service instances."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .engine import PillowAssetService
from .error_handling import SleepFunction
from .exceptions import ConfigurationError
from .logging_config import setup_logger
from .models import PipelineConfig
from .pipeline import OptimizationPipeline
from .protocols import AssetServiceProtocol, FileServiceProtocol, LoggerProtocol
from .services import OptimizationWorker
from .storage import S3FileService
from .verifier import ThumbnailVerifier
from .watermarks import WatermarkCatalog, WatermarkSelector


class LoggerAdapter:
    """
    LoggerProtocol over a ``logging.Logger`` of the media-optimizer tree.

    Keyword context is attached as record attributes, and records point at
    the calling service rather than at this adapter.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, message: str, context: Dict[str, Any]) -> None:
        self._logger.log(level, message, extra=context or None, stacklevel=3)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)


class LoggerFactory:
    """Factory for service loggers."""

    @staticmethod
    def create_logger(name: str, level: Optional[int] = None) -> LoggerProtocol:
        """
        Adapter for ``name`` under the media-optimizer tree.

        ``level`` overrides ``LOG_LEVEL`` for the whole tree; handler and
        format come from ``setup_logger``.
        """
        return LoggerAdapter(setup_logger(name, level))


def _service_logger(config: PipelineConfig) -> LoggerProtocol:
    return LoggerFactory.create_logger(
        "pipeline", logging.DEBUG if config.debug else None
    )


class PipelineFactory:
    """Factory for creating the complete optimization pipeline."""

    @staticmethod
    def create_files(config: PipelineConfig, logger: LoggerProtocol) -> FileServiceProtocol:
        """S3-backed file service for ``config.s3_bucket``."""
        if not config.s3_bucket:
            raise ConfigurationError("s3_bucket is required for the S3 file service")
        return S3FileService(config.s3_bucket, logger, prefix=config.s3_prefix)

    @staticmethod
    def create_pipeline(
        config: PipelineConfig,
        files: Optional[FileServiceProtocol] = None,
        assets: Optional[AssetServiceProtocol] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[LoggerProtocol] = None,
        sleep: SleepFunction = asyncio.sleep,
    ) -> OptimizationPipeline:
        """Create a fully configured pipeline.

        Missing collaborators default to S3 storage, the Pillow engine and an
        httpx client with the configured timeout. Thumbnail verification is
        left out entirely when no presets are configured.
        """
        if logger is None:
            logger = _service_logger(config)
        if files is None:
            files = PipelineFactory.create_files(config, logger)
        if assets is None:
            assets = PillowAssetService(files, logger)  # type: ignore[arg-type]

        catalog = WatermarkCatalog.from_entries(config.watermarks, config.watermark_path)
        worker = OptimizationWorker(
            assets=assets,
            files=files,
            selector=WatermarkSelector(catalog),
            config=config,
            logger=logger,
            sleep=sleep,
        )

        verifier = None
        if config.thumbnail_presets:
            if http_client is None:
                http_client = httpx.AsyncClient(timeout=config.thumbnail_timeout)
            verifier = ThumbnailVerifier(files, http_client, config, logger, sleep=sleep)

        return OptimizationPipeline(
            worker,
            verifier,
            logger,
            pacing_delay=config.queue_pacing_delay,
            sleep=sleep,
        )
