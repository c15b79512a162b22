"""S3-backed file metadata and content storage."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import aioboto3

from .exceptions import StorageError, errors_as
from .models import FileMetadata, UploadEvent
from .protocols import LoggerProtocol

UploadListener = Callable[[UploadEvent], Any]


class S3FileService:
    """
    File service keeping one JSON metadata record per file key.

    Records live at ``<prefix>meta/<key>.json`` and point at a content
    object ``<prefix><filename_disk>``. ``upload_one`` writes the content
    object first and the record last, so the record write is the commit
    point: if it fails the record still names the previous content.
    """

    def __init__(
        self,
        bucket: str,
        logger: LoggerProtocol,
        prefix: str = "",
        session: Optional[Any] = None,
        client: Optional[Any] = None,
    ):
        self._bucket = bucket
        self._prefix = prefix
        self._logger = logger
        self._client = client
        self._session = session
        if client is None and session is None:
            self._session = aioboto3.Session()
        self._listeners: List[UploadListener] = []

    def subscribe(self, listener: UploadListener) -> None:
        """Call ``listener`` for every upload made with ``emit_events=True``."""
        self._listeners.append(listener)

    def metadata_key(self, file_key: str) -> str:
        return f"{self._prefix}meta/{file_key}.json"

    def content_key(self, filename_disk: str) -> str:
        return f"{self._prefix}{filename_disk}"

    @asynccontextmanager
    async def _s3(self) -> AsyncIterator[Any]:
        if self._client is not None:
            yield self._client
            return
        async with self._session.client("s3") as s3_client:  # type: ignore[union-attr]
            yield s3_client

    async def _get(self, key: str) -> bytes:
        async with self._s3() as s3:
            response = await s3.get_object(Bucket=self._bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()

    async def _put(self, key: str, body: bytes, content_type: str) -> None:
        async with self._s3() as s3:
            await s3.put_object(
                Bucket=self._bucket, Key=key, Body=body, ContentType=content_type
            )

    async def read_one(self, file_key: str) -> FileMetadata:
        """Read the metadata record of ``file_key``."""
        with errors_as(StorageError, f"cannot read metadata of {file_key}"):
            body = await self._get(self.metadata_key(file_key))
            return FileMetadata.model_validate_json(body)

    async def read_content(self, file_key: str) -> bytes:
        """Read the content object the record of ``file_key`` points at."""
        record = await self.read_one(file_key)
        if not record.filename_disk:
            raise StorageError(f"{file_key} has no content on disk")
        with errors_as(StorageError, f"cannot read content of {file_key}"):
            return await self._get(self.content_key(record.filename_disk))

    async def upload_one(
        self,
        content: bytes,
        metadata: Dict[str, Any],
        file_key: str,
        emit_events: bool = True,
    ) -> None:
        """Store ``content`` and then the record ``metadata`` for ``file_key``."""
        record = FileMetadata(**metadata)
        if not record.filename_disk:
            record.filename_disk = file_key
        if record.filesize is None:
            record.filesize = len(content)

        with errors_as(StorageError, f"cannot write content of {file_key}"):
            await self._put(
                self.content_key(record.filename_disk),
                content,
                record.type or "application/octet-stream",
            )
        with errors_as(StorageError, f"cannot write metadata of {file_key}"):
            await self._put(
                self.metadata_key(file_key),
                record.model_dump_json().encode("utf-8"),
                "application/json",
            )
        self._logger.debug(f"[{file_key}] Stored {record.filename_disk}")

        if emit_events:
            event = UploadEvent(key=file_key, payload=record)
            for listener in self._listeners:
                listener(event)
