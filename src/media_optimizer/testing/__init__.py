"""Testing utilities and fakes for the media optimizer."""

from .fakes import (
    FakeAssetService,
    FakeFileService,
    FakeLogger,
    FakeS3Client,
    FakeThumbnailEndpoint,
    RecordingSleep,
    create_test_image,
    thumbnail_transport,
)

__all__ = [
    "FakeAssetService",
    "FakeFileService",
    "FakeLogger",
    "FakeS3Client",
    "FakeThumbnailEndpoint",
    "RecordingSleep",
    "create_test_image",
    "thumbnail_transport",
]
