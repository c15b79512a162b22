"""Main module for the media optimizer CLI."""

import argparse
import asyncio
import logging
import sys
from typing import Any, List, Optional

import httpx

from . import __version__
from .core import (
    ConfigurationError,
    OutcomeStatus,
    PipelineConfig,
    UploadEvent,
    get_logger,
    load_config,
)
from .core.factories import LoggerFactory, PipelineFactory
from .core.pipeline import OptimizationPipeline


def build_parser() -> argparse.ArgumentParser:
    """
    Build the ``media-optimizer`` argument parser.

    Settings not given on the command line come from the
    ``MEDIA_OPTIMIZER_*`` environment variables.
    """
    parser = argparse.ArgumentParser(
        prog="media-optimizer",
        description="Media Optimizer - transcode, watermark and re-warm thumbnails of stored images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Optimize two stored files
  media-optimizer optimize --bucket assets 4f1c9a photo-17

  # Re-warm two thumbnail presets after optimizing
  media-optimizer optimize --bucket assets --preset small --preset card 4f1c9a

  # Show version
  media-optimizer version
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    optimize_parser = subparsers.add_parser(
        "optimize", help="Run stored files through the optimization pipeline"
    )
    optimize_parser.add_argument("keys", nargs="+", help="File keys to optimize")
    optimize_parser.add_argument("--bucket", default=None, help="S3 bucket of the file store")
    optimize_parser.add_argument("--prefix", default=None, help="S3 key prefix of the file store")
    optimize_parser.add_argument("--max-size", type=int, default=None, help="Bounding box side in pixels")
    optimize_parser.add_argument("--quality", type=int, default=None, help="Output quality 0-100")
    optimize_parser.add_argument(
        "--preset",
        action="append",
        default=None,
        help="Thumbnail preset to regenerate (repeatable)",
    )
    optimize_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return load_config(
        s3_bucket=args.bucket,
        s3_prefix=args.prefix,
        max_size=args.max_size,
        quality=args.quality,
        thumbnail_presets=args.preset,
        debug=args.debug or None,
    )


async def optimize(config: PipelineConfig, keys: List[str]) -> int:
    """Feed ``keys`` through the upload trigger and wait for the queue.

    Returns the number of items that failed.
    """
    adapter = LoggerFactory.create_logger(
        "pipeline", logging.DEBUG if config.debug else None
    )
    logger = get_logger("cli")
    files = PipelineFactory.create_files(config, adapter)

    async with httpx.AsyncClient(timeout=config.thumbnail_timeout) as client:
        pipeline = PipelineFactory.create_pipeline(
            config, files=files, http_client=client, logger=adapter
        )
        await _run(pipeline, files, keys, logger)

    failures = 0
    for outcome in pipeline.outcomes:
        if outcome.status == OutcomeStatus.FAILED:
            failures += 1
        logger.info(f"[{outcome.file_key}] {outcome.status.value}")
    for report in pipeline.reports:
        if not report.ready or report.failed:
            failures += 1
    return failures


async def _run(pipeline: OptimizationPipeline, files: Any, keys: List[str], logger: Any) -> None:
    for key in keys:
        try:
            payload = await files.read_one(key)
        except Exception as e:  # noqa: BLE001
            logger.error(f"[{key}] Cannot read file record: {e}")
            continue
        if not pipeline.on_upload(UploadEvent(key=key, payload=payload)):
            logger.info(f"[{key}] Already optimized")

    pipeline.close()
    await pipeline.join()


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``media-optimizer`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Media Optimizer CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    if args.command != "optimize":
        parser.print_help()
        sys.exit(1)

    logger = get_logger("cli")
    try:
        config = config_from_args(args)
        failures = asyncio.run(optimize(config, args.keys))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.warning("Optimization interrupted by user.")
        sys.exit(130)

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
