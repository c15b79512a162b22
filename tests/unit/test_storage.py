"""Unit tests for the S3-backed file service."""

import json

import pytest

from media_optimizer.core.exceptions import StorageError
from media_optimizer.core.storage import S3FileService
from media_optimizer.testing.fakes import FakeLogger, FakeS3Client


@pytest.fixture
def s3_client():
    client = FakeS3Client()
    client.create_bucket("assets")
    return client


@pytest.fixture
def service(s3_client):
    return S3FileService("assets", FakeLogger(), prefix="cms/", client=s3_client)


class TestKeys:
    """Tests for object key layout."""

    def test_metadata_and_content_keys(self, service):
        assert service.metadata_key("abc") == "cms/meta/abc.json"
        assert service.content_key("abc.avif") == "cms/abc.avif"


class TestUploadAndRead:
    """Round trip through the fake S3 client."""

    @pytest.mark.asyncio
    async def test_upload_then_read(self, service, s3_client):
        await service.upload_one(
            b"content",
            {"type": "image/jpeg", "filename_disk": "abc.jpg", "title": "Sunset"},
            "abc",
        )

        record = await service.read_one("abc")
        assert record.type == "image/jpeg"
        assert record.filesize == 7
        assert record.model_dump()["title"] == "Sunset"
        assert await service.read_content("abc") == b"content"

        body, content_type = s3_client.buckets["assets"]["cms/abc.jpg"]
        assert body == b"content"
        assert content_type == "image/jpeg"
        stored = json.loads(s3_client.buckets["assets"]["cms/meta/abc.json"][0])
        assert stored["filename_disk"] == "abc.jpg"

    @pytest.mark.asyncio
    async def test_filename_defaults_to_key(self, service):
        await service.upload_one(b"x", {"type": "image/png"}, "abc")
        assert (await service.read_one("abc")).filename_disk == "abc"

    @pytest.mark.asyncio
    async def test_events_only_when_requested(self, service):
        events = []
        service.subscribe(events.append)

        await service.upload_one(b"x", {"type": "image/png"}, "quiet", emit_events=False)
        await service.upload_one(b"x", {"type": "image/png"}, "loud")

        assert [e.key for e in events] == ["loud"]
        assert events[0].payload.type == "image/png"


class TestFailures:
    """Storage failures surface as StorageError."""

    @pytest.mark.asyncio
    async def test_missing_record(self, service):
        with pytest.raises(StorageError, match="cannot read metadata of nope"):
            await service.read_one("nope")

    @pytest.mark.asyncio
    async def test_record_without_content(self, service, s3_client):
        s3_client.buckets["assets"]["cms/meta/abc.json"] = (b'{"type": "image/png"}', "application/json")
        with pytest.raises(StorageError, match="no content"):
            await service.read_content("abc")

    @pytest.mark.asyncio
    async def test_failed_metadata_write_keeps_previous_record(self, service, s3_client):
        await service.upload_one(
            b"original", {"type": "image/jpeg", "filename_disk": "abc.jpg"}, "abc"
        )
        s3_client.fail_on_keys = [".json"]

        with pytest.raises(StorageError, match="cannot write metadata"):
            await service.upload_one(
                b"optimized",
                {"type": "image/avif", "filename_disk": "new.avif", "optimized": True},
                "abc",
                emit_events=False,
            )

        s3_client.fail_on_keys = []
        record = await service.read_one("abc")
        assert record.filename_disk == "abc.jpg"
        assert record.optimized is False
        assert await service.read_content("abc") == b"original"
