"""Optimization worker and the single-consumer upload queue."""

import asyncio
import os
import time
import uuid
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

from .dimensions import resize
from .error_handling import SleepFunction
from .exceptions import (
    CommitFailure,
    InvalidDimensions,
    QueueClosedError,
    TransformationFailure,
    UnsupportedTypeSkip,
    errors_as,
)
from .models import (
    FileMetadata,
    OutcomeStatus,
    PipelineConfig,
    ProcessingOutcome,
    WorkItem,
)
from .planner import build_plan, output_mime_type
from .protocols import AssetServiceProtocol, FileServiceProtocol, LoggerProtocol
from .watermarks import WatermarkSelector

# Cached on the original record, stale once the content is re-encoded.
STALE_FIELDS = ("width", "height", "filesize", "size")

BYTES_PER_MEGABYTE = 1_000_000


class OptimizationWorker:
    """Runs one work item end to end: plan, transform, compare, commit."""

    def __init__(
        self,
        assets: AssetServiceProtocol,
        files: FileServiceProtocol,
        selector: WatermarkSelector,
        config: PipelineConfig,
        logger: LoggerProtocol,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self._assets = assets
        self._files = files
        self._selector = selector
        self._config = config
        self._logger = logger
        self._sleep = sleep

    def throttle_delay(self, output_size: int) -> float:
        """Pause after a commit, proportional to the written size and clamped."""
        delay = output_size / BYTES_PER_MEGABYTE * self._config.throttle_seconds_per_megabyte
        return min(
            self._config.throttle_max_seconds,
            max(self._config.throttle_min_seconds, delay),
        )

    async def process(self, item: WorkItem) -> ProcessingOutcome:
        """Process a single work item. Never raises."""
        start_time = time.time()
        key = item.file_key

        try:
            outcome = await self._process(item)
        except UnsupportedTypeSkip as e:
            self._logger.info(f"[{key}] Skipping unsupported type: {e}")
            outcome = ProcessingOutcome(file_key=key, status=OutcomeStatus.UNSUPPORTED)
        except InvalidDimensions as e:
            self._logger.warning(f"[{key}] Skipping, invalid dimensions: {e}")
            outcome = ProcessingOutcome(
                file_key=key, status=OutcomeStatus.INVALID, error=str(e)
            )
        except Exception as e:  # noqa: BLE001
            self._logger.error(
                f"[{key}] Processing failed due to {type(e).__name__}: {e}"
            )
            outcome = ProcessingOutcome(
                file_key=key, status=OutcomeStatus.FAILED, error=str(e)
            )

        outcome.processing_time = time.time() - start_time
        return outcome

    def _services(self, item: WorkItem) -> Tuple[Any, Any]:
        if item.services is not None:
            return item.services.assets, item.services.files
        return self._assets, self._files

    async def _effective_metadata(self, item: WorkItem, files: Any) -> FileMetadata:
        """Live record wins field by field; the payload fills the gaps."""
        key = item.file_key
        try:
            live = await files.read_one(key)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                f"[{key}] Could not read live metadata, using upload payload: {e}"
            )
            return item.payload

        merged = item.payload.model_dump()
        merged.update(
            {name: value for name, value in live.model_dump().items() if value is not None}
        )
        return FileMetadata(**merged)

    async def _process(self, item: WorkItem) -> ProcessingOutcome:
        key = item.file_key
        assets, files = self._services(item)

        # Step 1: authoritative metadata
        metadata = await self._effective_metadata(item, files)
        if metadata.optimized:
            self._logger.info(f"[{key}] Already optimized, nothing to do")
            return ProcessingOutcome(
                file_key=key, status=OutcomeStatus.ALREADY_OPTIMIZED
            )

        # Step 2: geometry
        target = resize(metadata.width, metadata.height, self._config.max_size)
        if target is None:
            raise InvalidDimensions(
                f"{metadata.width!r}x{metadata.height!r} (max {self._config.max_size})"
            )

        # Step 3: watermark and plan
        watermark = self._selector.select(*target)
        plan = build_plan(
            metadata.type,
            self._config.quality,
            self._config.max_size,
            watermark,
            output_format=self._config.output_format,
        )
        if plan is None:
            raise UnsupportedTypeSkip(str(metadata.type))
        self._logger.debug(
            f"[{key}] Target {target[0]}x{target[1]}, watermark "
            f"{watermark.filename if watermark else 'none'}"
        )

        # Step 4: transform
        with errors_as(TransformationFailure, "transformation failed"):
            asset = await assets.get_asset(key, plan)
        stat = asset.stat

        # Step 5: compare
        original_size = metadata.filesize
        if not original_size or original_size <= 0:
            self._logger.warning(
                f"[{key}] Original size unknown, keeping original"
            )
            return ProcessingOutcome(
                file_key=key,
                status=OutcomeStatus.SKIPPED,
                final_width=stat.width,
                final_height=stat.height,
                final_byte_size=stat.size,
            )
        if stat.size >= original_size:
            self._logger.info(
                f"[{key}] Optimized output is not smaller "
                f"({stat.size} >= {original_size} bytes), keeping original"
            )
            return ProcessingOutcome(
                file_key=key,
                status=OutcomeStatus.SKIPPED,
                final_width=stat.width,
                final_height=stat.height,
                final_byte_size=stat.size,
            )

        # Step 6: commit
        patch = self._commit_patch(key, metadata)
        with errors_as(CommitFailure, "commit failed"):
            await files.upload_one(asset.content, patch, key, emit_events=False)
        self._logger.info(
            f"[{key}] Committed {patch['filename_disk']}: "
            f"{original_size} -> {stat.size} bytes"
        )

        # Step 7: throttle
        await self._sleep(self.throttle_delay(stat.size))

        return ProcessingOutcome(
            file_key=key,
            status=OutcomeStatus.COMMITTED,
            committed=True,
            final_width=stat.width,
            final_height=stat.height,
            final_byte_size=stat.size,
            new_filename=patch["filename_disk"],
        )

    def _commit_patch(self, key: str, metadata: FileMetadata) -> Dict[str, Any]:
        extension = self._config.output_format.lower()
        patch = metadata.model_dump()
        for name in STALE_FIELDS:
            patch.pop(name, None)

        original_name = metadata.filename_download or metadata.filename_disk or key
        stem = os.path.splitext(os.path.basename(original_name))[0] or key

        patch["type"] = output_mime_type(extension)
        patch["filename_disk"] = f"{uuid.uuid4().hex}.{extension}"
        patch["filename_download"] = f"{stem}.{extension}"
        patch["optimized"] = True
        return patch


class UploadQueue:
    """
    FIFO of work items drained by at most one consumer.

    ``enqueue`` only appends and, when idle, starts the drain task; it is
    safe to call while an item is being processed.
    """

    def __init__(
        self,
        handler: Callable[[WorkItem], Awaitable[Any]],
        logger: LoggerProtocol,
        pacing_delay: float = 0.0,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self._handler = handler
        self._logger = logger
        self._pacing_delay = pacing_delay
        self._sleep = sleep
        self._pending: Deque[WorkItem] = deque()
        self._busy = False
        self._closed = False
        self._drain_task: Optional["asyncio.Task[None]"] = None
        self._processed_count = 0

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def processed_count(self) -> int:
        return self._processed_count

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, item: WorkItem) -> None:
        """Append ``item``. Must be called from a running event loop."""
        if self._closed:
            raise QueueClosedError(f"queue closed, rejected {item.file_key}")

        self._pending.append(item)
        self._logger.debug(
            f"[{item.file_key}] Enqueued ({len(self._pending)} pending)"
        )
        if not self._busy:
            self._busy = True
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    def close(self) -> None:
        """Stop accepting items. Already pending items still drain."""
        self._closed = True

    async def join(self) -> None:
        """Wait until the queue is empty and idle."""
        while self._drain_task is not None:
            await self._drain_task

    async def _drain(self) -> None:
        try:
            while self._pending:
                item = self._pending.popleft()
                try:
                    await self._handler(item)
                except Exception as e:  # noqa: BLE001
                    self._logger.error(
                        f"[{item.file_key}] Unhandled error while processing: {e}"
                    )
                self._processed_count += 1

                if self._pending and self._pacing_delay > 0:
                    await self._sleep(self._pacing_delay)
        finally:
            self._busy = False
            self._drain_task = None
