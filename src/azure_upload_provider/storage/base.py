"""Base protocol for blob transfer implementations."""

import time
from typing import BinaryIO, Protocol

from ..models import BlobLocator


class Deadline:
    """
    Point in time after which a transfer must give up.

    Passed to every transfer so the whole operation, not each request,
    is bounded.
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self) -> None:
        """Raise TimeoutError once the deadline has passed."""
        if self.expired:
            raise TimeoutError(f"Transfer deadline of {self.seconds:g}s exceeded")


class BlobTransfer(Protocol):
    """
    Protocol for blob transfer implementations.

    Retries and authentication are the implementation's concern; callers
    only sequence operations and map errors.
    """

    def upload_stream(
        self,
        deadline: Deadline,
        stream: BinaryIO,
        locator: BlobLocator,
        block_size: int,
        concurrency: int,
        content_type: str,
        length: int,
    ) -> None:
        """
        Upload a stream as a block blob, overwriting any existing blob.

        Args:
            deadline: Bound for the whole upload
            stream: Source of the blob content
            locator: Destination blob
            block_size: Size of each staged block in bytes
            concurrency: Maximum blocks in flight
            content_type: Content-Type stored with the blob
            length: Number of bytes to read from stream
        """
        ...

    def download_to_buffer(
        self,
        deadline: Deadline,
        buffer: bytearray,
        locator: BlobLocator,
        offset: int,
        length: int,
    ) -> None:
        """
        Fill buffer with length bytes of the blob starting at offset.

        Raises:
            ValueError: If the blob yields a different number of bytes
        """
        ...

    def delete_blob(self, locator: BlobLocator) -> None:
        """Delete a blob."""
        ...
