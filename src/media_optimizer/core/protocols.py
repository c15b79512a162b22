"""Protocol definitions for dependency injection and testability."""

from typing import Any, Dict, Protocol

from .models import FileMetadata, TransformationPlan, TransformedAsset


class AssetServiceProtocol(Protocol):
    """Transformation engine: produces a transformed rendition of a stored file."""

    async def get_asset(
        self, file_key: str, plan: TransformationPlan
    ) -> TransformedAsset:
        """Apply ``plan`` to the file and return the output bytes and stat."""
        ...


class FileServiceProtocol(Protocol):
    """File metadata and content storage."""

    async def read_one(self, file_key: str) -> FileMetadata:
        """Read the current metadata record."""
        ...

    async def upload_one(
        self,
        content: bytes,
        metadata: Dict[str, Any],
        file_key: str,
        emit_events: bool = True,
    ) -> None:
        """Replace content and metadata of ``file_key`` together."""
        ...


class ContentSourceProtocol(Protocol):
    """Anything that can hand out the stored bytes of a file."""

    async def read_content(self, file_key: str) -> bytes:
        """Read the current content of the file."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        ...
