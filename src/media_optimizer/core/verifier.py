"""Post-commit readiness polling and thumbnail regeneration."""

import asyncio
from typing import List, Optional, Sequence

import httpx

from .error_handling import SleepFunction, retry_async
from .exceptions import ReadinessTimeout, ThumbnailFormatMismatch, ThumbnailRequestError
from .models import (
    FileMetadata,
    PipelineConfig,
    ProcessingOutcome,
    ThumbnailResult,
    VerificationReport,
)
from .protocols import FileServiceProtocol, LoggerProtocol

FALLBACK_ACCEPT = ("image/png", "image/jpeg")

# InvalidURL and StreamError sit outside the HTTPError hierarchy
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError)


def base_mime_type(content_type: Optional[str]) -> str:
    """``"image/avif; charset=binary"`` -> ``"image/avif"``."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


def accept_header(mime_type: str) -> str:
    accepted = [mime_type]
    accepted.extend(m for m in FALLBACK_ACCEPT if m != mime_type)
    return ",".join(accepted)


class ThumbnailVerifier:
    """
    Makes sure a freshly committed file is served correctly downstream.

    First polls the file service until the new record is visible, then asks
    the thumbnail endpoint for every configured preset in every configured
    format, checking the returned ``Content-Type``.
    """

    def __init__(
        self,
        files: FileServiceProtocol,
        client: httpx.AsyncClient,
        config: PipelineConfig,
        logger: LoggerProtocol,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self._files = files
        self._client = client
        self._config = config
        self._logger = logger
        self._sleep = sleep

    async def wait_for_ready(
        self,
        file_key: str,
        max_attempts: int,
        interval: float,
        expected_filename: Optional[str] = None,
    ) -> FileMetadata:
        """
        Poll the metadata record until it names an on-disk file.

        Raises:
            ReadinessTimeout: If ``max_attempts`` reads never showed it
        """

        async def poll(attempt: int) -> FileMetadata:
            return await self._files.read_one(file_key)

        def is_ready(record: FileMetadata) -> bool:
            if not record.filename_disk:
                return False
            return expected_filename is None or record.filename_disk == expected_filename

        outcome = await retry_async(
            poll,
            max_attempts=max_attempts,
            base_delay=interval,
            backoff_factor=1.0,
            is_success=is_ready,
            sleep=self._sleep,
            description=f"[{file_key}] readiness poll",
            logger=self._logger,
        )
        if not outcome.success:
            detail = f": {outcome.last_error}" if outcome.last_error else ""
            raise ReadinessTimeout(
                f"{file_key} not ready after {max_attempts} attempts{detail}"
            )
        return outcome.value

    async def fetch_thumbnail(self, file_key: str, preset: str, mime_type: str) -> str:
        """
        Request one thumbnail, drain the body and return its content type.

        Raises:
            ThumbnailRequestError: On transport errors, timeouts or HTTP errors
        """
        url = f"{self._config.thumbnail_base_url.rstrip('/')}/{file_key}"
        try:
            async with self._client.stream(
                "GET",
                url,
                params={"key": preset},
                headers={"Accept": accept_header(mime_type)},
                timeout=self._config.thumbnail_timeout,
            ) as response:
                async for _ in response.aiter_raw():
                    pass
                response.raise_for_status()
                return response.headers.get("content-type", "")
        except TRANSPORT_ERRORS as exc:
            raise ThumbnailRequestError(f"{preset} as {mime_type}: {exc}") from exc

    async def request_thumbnails(
        self,
        file_key: str,
        presets: Sequence[str],
        formats: Sequence[str],
        retry_attempts: int,
    ) -> List[ThumbnailResult]:
        """Regenerate every preset in every format; failures never abort the rest."""
        results = []
        for preset in presets:
            for mime_type in formats:
                results.append(
                    await self._request_one(file_key, preset, mime_type, retry_attempts)
                )
        return results

    async def _request_one(
        self, file_key: str, preset: str, mime_type: str, retry_attempts: int
    ) -> ThumbnailResult:
        wanted = base_mime_type(mime_type)

        async def attempt(number: int) -> str:
            return await self.fetch_thumbnail(file_key, preset, mime_type)

        outcome = await retry_async(
            attempt,
            max_attempts=retry_attempts,
            base_delay=self._config.thumbnail_backoff,
            error_base_delay=self._config.thumbnail_error_backoff,
            is_success=lambda content_type: base_mime_type(content_type) == wanted,
            retry_on=(ThumbnailRequestError,),
            sleep=self._sleep,
            description=f"[{file_key}] thumbnail {preset} as {mime_type}",
            logger=self._logger,
        )

        result = ThumbnailResult(
            preset=preset,
            mime_type=mime_type,
            success=outcome.success,
            attempts=outcome.attempts,
            content_type=base_mime_type(outcome.value),
        )
        if outcome.success:
            self._logger.debug(f"[{file_key}] Thumbnail {preset} served as {mime_type}")
            return result

        error = outcome.last_error or ThumbnailFormatMismatch(mime_type, result.content_type)
        result.error = str(error)
        self._logger.warning(
            f"[{file_key}] Thumbnail {preset} as {mime_type} failed after "
            f"{outcome.attempts} attempts: {error}"
        )
        return result

    async def verify(
        self, file_key: str, outcome: Optional[ProcessingOutcome] = None
    ) -> VerificationReport:
        """Readiness poll, then thumbnail requests. Never raises."""
        report = VerificationReport(file_key=file_key)
        expected = outcome.new_filename if outcome is not None else None

        try:
            await self.wait_for_ready(
                file_key,
                self._config.readiness_attempts,
                self._config.readiness_interval,
                expected_filename=expected,
            )
        except ReadinessTimeout as e:
            self._logger.error(f"[{file_key}] Readiness check failed: {e}")
            return report
        report.ready = True

        report.thumbnails = await self.request_thumbnails(
            file_key,
            self._config.thumbnail_presets,
            self._config.thumbnail_formats,
            self._config.thumbnail_retry_attempts,
        )
        if report.failed:
            self._logger.warning(
                f"[{file_key}] {len(report.failed)}/{len(report.thumbnails)} "
                f"thumbnail renditions did not verify"
            )
        else:
            self._logger.info(
                f"[{file_key}] Verified {len(report.thumbnails)} thumbnail renditions"
            )
        return report
