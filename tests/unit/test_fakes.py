"""Tests for the testing fakes themselves."""

import pytest

from media_optimizer.core.models import TransformationPlan
from media_optimizer.testing.fakes import (
    FakeAssetService,
    FakeFileService,
    FakeLogger,
    RecordingSleep,
    create_test_image,
)


class TestFakeFileService:
    """Tests for FakeFileService."""

    @pytest.mark.asyncio
    async def test_add_file_defaults(self):
        files = FakeFileService()
        files.add_file("k", b"12345", type="image/png")

        record = await files.read_one("k")
        assert record.filename_disk == "k"
        assert record.filesize == 5
        assert await files.read_content("k") == b"12345"

    def test_ingest_notifies_subscribers(self):
        files = FakeFileService()
        events = []
        files.subscribe(events.append)

        files.add_file("quiet", b"x")
        files.ingest("loud", b"x", type="image/png")

        assert [e.key for e in events] == ["loud"]

    @pytest.mark.asyncio
    async def test_failed_upload_changes_nothing(self):
        files = FakeFileService()
        files.add_file("k", b"old", type="image/png")
        files.should_fail_uploads = True

        with pytest.raises(Exception):
            await files.upload_one(b"new", {"type": "image/avif"}, "k")

        assert files.records["k"].type == "image/png"
        assert len(files.uploads) == 1

    @pytest.mark.asyncio
    async def test_read_returns_copies(self):
        files = FakeFileService()
        files.add_file("k", b"x", type="image/png")

        record = await files.read_one("k")
        record.type = "changed"

        assert files.records["k"].type == "image/png"


class TestFakeAssetService:
    """Tests for FakeAssetService."""

    @pytest.mark.asyncio
    async def test_returns_configured_output(self):
        assets = FakeAssetService(output_size=10, width=4, height=3)
        plan = TransformationPlan(output_format="avif", quality=75, max_width=4, max_height=4)

        asset = await assets.get_asset("k", plan)

        assert asset.stat.size == 10
        assert len(asset.content) == 10
        assert assets.calls == [("k", plan)]
        assert assets.in_flight == 0


@pytest.mark.asyncio
async def test_recording_sleep():
    sleep = RecordingSleep()
    await sleep(1.5)
    await sleep(0.5)
    assert sleep.delays == [1.5, 0.5]


def test_fake_logger_filters_by_level():
    logger = FakeLogger()
    logger.info("a")
    logger.warning("b")
    assert logger.messages("WARNING") == ["b"]
    assert len(logger.get_logs()) == 2


def test_create_test_image_is_jpeg():
    assert create_test_image(20, 20)[:2] == b"\xff\xd8"
