"""Custom exceptions for the media optimizer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Type


class MediaOptimizerError(Exception):
    """Base exception for all media optimizer errors."""


class ConfigurationError(MediaOptimizerError):
    """Error raised for invalid configuration options."""


class StorageError(MediaOptimizerError):
    """Error raised when the file storage backend fails."""


class UnsupportedTypeSkip(MediaOptimizerError):
    """The file type cannot be optimized. A legitimate skip, not a fault."""


class InvalidDimensions(MediaOptimizerError):
    """Source metadata carries missing, non-finite or non-positive dimensions."""


class TransformationFailure(MediaOptimizerError):
    """The transformation engine could not produce an output."""


class CommitFailure(MediaOptimizerError):
    """Writing the optimized content and metadata back to storage failed."""


class ReadinessTimeout(MediaOptimizerError):
    """The updated file record did not become visible within the poll budget."""


class ThumbnailFormatMismatch(MediaOptimizerError):
    """The thumbnail endpoint answered with a different content type."""

    def __init__(self, requested: str, received: str):
        super().__init__(f"requested {requested}, received {received or 'nothing'}")
        self.requested = requested
        self.received = received


class ThumbnailRequestError(MediaOptimizerError):
    """Network, timeout or HTTP status failure while requesting a thumbnail."""


class QueueClosedError(MediaOptimizerError):
    """Raised when enqueueing into a queue that has been closed."""


@contextmanager
def errors_as(error_type: Type[MediaOptimizerError], message: str) -> Iterator[None]:
    """Translate foreign exceptions raised in the block into ``error_type``.

    Pipeline errors pass through untouched so an inner component can pick a
    more specific kind than the caller would.
    """
    try:
        yield
    except MediaOptimizerError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise error_type(f"{message}: {exc}") from exc
