"""Upload trigger wiring: filter, enqueue, process, verify."""

import asyncio
from collections import deque
from typing import Deque, Optional

from .error_handling import SleepFunction
from .models import (
    ProcessingOutcome,
    ServiceHandles,
    UploadEvent,
    VerificationReport,
    WorkItem,
)
from .protocols import LoggerProtocol
from .services import OptimizationWorker, UploadQueue
from .verifier import ThumbnailVerifier


class OptimizationPipeline:
    """One pipeline instance per running service; owns its queue."""

    def __init__(
        self,
        worker: OptimizationWorker,
        verifier: Optional[ThumbnailVerifier],
        logger: LoggerProtocol,
        pacing_delay: float = 0.0,
        sleep: SleepFunction = asyncio.sleep,
        history_size: int = 1000,
    ):
        self._worker = worker
        self._verifier = verifier
        self._logger = logger
        self.queue = UploadQueue(
            self._handle, logger, pacing_delay=pacing_delay, sleep=sleep
        )
        self.outcomes: Deque[ProcessingOutcome] = deque(maxlen=history_size)
        self.reports: Deque[VerificationReport] = deque(maxlen=history_size)

    def on_upload(
        self, event: UploadEvent, services: Optional[ServiceHandles] = None
    ) -> bool:
        """
        React to an "asset uploaded" notification.

        Returns True when a work item was enqueued. Files already marked
        optimized are ignored, otherwise committing an optimized file would
        trigger its own reprocessing.
        """
        if event.payload.optimized:
            self._logger.debug(f"[{event.key}] Ignoring upload of optimized file")
            return False

        self.queue.enqueue(
            WorkItem(
                file_key=event.key,
                payload=event.payload.model_copy(deep=True),
                services=services,
            )
        )
        return True

    async def join(self) -> None:
        await self.queue.join()

    def close(self) -> None:
        self.queue.close()

    async def _handle(self, item: WorkItem) -> None:
        outcome = await self._worker.process(item)
        self.outcomes.append(outcome)
        if not outcome.committed or self._verifier is None:
            return
        report = await self._verifier.verify(item.file_key, outcome)
        self.reports.append(report)
