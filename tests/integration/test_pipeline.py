"""End-to-end tests of the upload trigger, worker, queue and verifier."""

import httpx
import pytest
import pytest_asyncio

from media_optimizer.core.exceptions import QueueClosedError
from media_optimizer.core.factories import PipelineFactory
from media_optimizer.core.models import (
    FileMetadata,
    OutcomeStatus,
    PipelineConfig,
    UploadEvent,
    WatermarkEntry,
)
from media_optimizer.testing.fakes import (
    FakeAssetService,
    FakeFileService,
    FakeLogger,
    FakeThumbnailEndpoint,
    RecordingSleep,
    thumbnail_transport,
)

PHOTO = dict(
    type="image/jpeg",
    filesize=5_000_000,
    filename_download="photo.jpg",
    width=4000,
    height=3000,
)


def _config(presets=("small", "card")):
    return PipelineConfig(
        watermark_path="/wm",
        watermarks=[
            WatermarkEntry(filename="small.png", width=200, height=50),
            WatermarkEntry(filename="large.png", width=1200, height=300),
            WatermarkEntry(filename="huge.png", width=2000, height=500),
        ],
        thumbnail_base_url="https://cms.example.com/assets",
        thumbnail_presets=list(presets),
        thumbnail_backoff=0.5,
        thumbnail_error_backoff=2.0,
    )


class Harness:
    """Pipeline wired to in-memory fakes."""

    def __init__(self, config, output_size=1_000_000, endpoint=None):
        self.files = FakeFileService()
        self.assets = FakeAssetService(output_size=output_size)
        self.endpoint = endpoint or FakeThumbnailEndpoint()
        self.client = httpx.AsyncClient(transport=thumbnail_transport(self.endpoint))
        self.logger = FakeLogger()
        self.sleep = RecordingSleep()
        self.pipeline = PipelineFactory.create_pipeline(
            config,
            files=self.files,
            assets=self.assets,
            http_client=self.client,
            logger=self.logger,
            sleep=self.sleep,
        )

    async def upload(self, key, content=b"original", **metadata):
        record = self.files.add_file(key, content, **metadata)
        self.pipeline.on_upload(UploadEvent(key=key, payload=record))
        await self.pipeline.join()

    async def aclose(self):
        await self.client.aclose()


@pytest_asyncio.fixture
async def harness():
    instance = Harness(_config())
    yield instance
    await instance.aclose()


class TestOptimizationFlow:
    """Full runs of a single upload."""

    @pytest.mark.asyncio
    async def test_large_photo_is_committed_and_rewarmed(self, harness):
        await harness.upload("photo", **PHOTO)

        (key, plan), = harness.assets.calls
        assert key == "photo"
        assert (plan.output_format, plan.quality) == ("avif", 75)
        assert (plan.max_width, plan.max_height) == (1920, 1920)
        assert [c.input_path for c in plan.composites] == ["/wm/large.png"]

        (upload,) = harness.files.uploads
        assert upload.emit_events is False
        assert upload.metadata["type"] == "image/avif"
        assert upload.metadata["optimized"] is True
        assert upload.metadata["filename_download"] == "photo.avif"
        for stale in ("width", "height", "filesize"):
            assert stale not in upload.metadata

        record = harness.files.records["photo"]
        assert record.optimized is True
        assert record.filesize == 1_000_000

        assert harness.endpoint.requested() == [
            ("small", "image/avif"),
            ("small", "image/webp"),
            ("card", "image/avif"),
            ("card", "image/webp"),
        ]
        assert harness.sleep.delays == [1.0]

        (outcome,) = harness.pipeline.outcomes
        assert outcome.status == OutcomeStatus.COMMITTED
        (report,) = harness.pipeline.reports
        assert report.ready
        assert report.failed == []

    @pytest.mark.asyncio
    async def test_unsupported_type_is_left_alone(self, harness):
        await harness.upload("icon", type="image/bmp", filesize=4000, width=32, height=32)

        assert harness.assets.calls == []
        assert harness.files.uploads == []
        assert harness.endpoint.requests == []
        assert harness.pipeline.outcomes[0].status == OutcomeStatus.UNSUPPORTED

    @pytest.mark.asyncio
    async def test_larger_output_keeps_original(self):
        harness = Harness(_config(), output_size=6_000_000)
        try:
            await harness.upload("photo", **PHOTO)
        finally:
            await harness.aclose()

        assert len(harness.assets.calls) == 1
        assert harness.files.uploads == []
        assert harness.files.records["photo"].optimized is False
        assert harness.endpoint.requests == []
        assert harness.pipeline.outcomes[0].status == OutcomeStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_thumbnail_format_mismatch_is_retried_then_reported(self):
        endpoint = FakeThumbnailEndpoint(served={"image/avif": "image/png"})
        harness = Harness(_config(presets=("small",)), endpoint=endpoint)
        try:
            await harness.upload("photo", **PHOTO)
        finally:
            await harness.aclose()

        assert endpoint.requested() == [
            ("small", "image/avif"),
            ("small", "image/avif"),
            ("small", "image/avif"),
            ("small", "image/webp"),
        ]
        # throttle, then the backoff between the three avif attempts
        assert harness.sleep.delays == [1.0, 0.5, 1.0]

        (report,) = harness.pipeline.reports
        assert [r.mime_type for r in report.failed] == ["image/avif"]
        assert any(
            "small as image/avif failed after 3 attempts" in m
            for m in harness.logger.messages("WARNING")
        )
        assert harness.files.records["photo"].optimized is True


class TestUploadTrigger:
    """Tests for event wiring and queue ordering."""

    @pytest.mark.asyncio
    async def test_uploads_are_processed_in_order_one_at_a_time(self, harness):
        harness.files.subscribe(harness.pipeline.on_upload)

        for key in ("a", "b", "c"):
            harness.files.ingest(key, b"original", **PHOTO)
        await harness.pipeline.join()

        assert [key for key, _ in harness.assets.calls] == ["a", "b", "c"]
        assert harness.assets.max_in_flight == 1
        assert [o.file_key for o in harness.pipeline.outcomes] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_commit_does_not_retrigger_processing(self, harness):
        harness.files.subscribe(harness.pipeline.on_upload)

        harness.files.ingest("photo", b"original", **PHOTO)
        await harness.pipeline.join()
        await harness.pipeline.join()

        assert len(harness.assets.calls) == 1
        assert harness.pipeline.queue.processed_count == 1

    @pytest.mark.asyncio
    async def test_optimized_payload_is_ignored(self, harness):
        payload = FileMetadata(type="image/avif", optimized=True)

        accepted = harness.pipeline.on_upload(UploadEvent(key="photo", payload=payload))

        assert accepted is False
        assert harness.pipeline.queue.pending_count == 0
        assert harness.assets.calls == []

    @pytest.mark.asyncio
    async def test_closed_pipeline_rejects_uploads(self, harness):
        harness.pipeline.close()
        with pytest.raises(QueueClosedError):
            harness.pipeline.on_upload(
                UploadEvent(key="photo", payload=FileMetadata(**PHOTO))
            )
