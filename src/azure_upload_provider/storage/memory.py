"""In-memory blob transfer for unit tests and local development."""

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Tuple

from ..models import BlobLocator
from .base import Deadline


@dataclass
class StoredBlob:
    data: bytes
    content_type: str


@dataclass
class InMemoryBlobTransfer:
    """
    Keeps blobs in a dict keyed by (container, blob path).

    Every operation is appended to ``calls`` as (operation, container,
    blob path) so tests can assert on ordering. Exceptions registered in
    ``failures`` under the same key shape are raised instead of running
    the operation.
    """
    blobs: Dict[Tuple[str, str], StoredBlob] = field(default_factory=dict)
    calls: List[Tuple[str, str, str]] = field(default_factory=list)
    failures: Dict[Tuple[str, str, str], BaseException] = field(default_factory=dict)

    def _record(self, operation: str, locator: BlobLocator) -> None:
        key = (operation, locator.container, locator.blob_path)
        self.calls.append(key)
        error = self.failures.get(key)
        if error is not None:
            raise error

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
        deadline.check()
        if block_size <= 0 or concurrency <= 0:
            raise ValueError("block_size and concurrency must be positive")
        self._record("upload", locator)
        self.blobs[(locator.container, locator.blob_path)] = StoredBlob(
            data=stream.read(length),
            content_type=content_type,
        )

    def download_to_buffer(
        self,
        deadline: Deadline,
        buffer: bytearray,
        locator: BlobLocator,
        offset: int,
        length: int,
    ) -> None:
        deadline.check()
        self._record("download", locator)
        blob = self.blobs.get((locator.container, locator.blob_path))
        if blob is None:
            raise FileNotFoundError(f"Blob not found: {locator.container}/{locator.blob_path}")

        data = blob.data[offset:offset + length]
        if len(data) != length:
            raise ValueError(
                f"Expected {length} bytes from {locator.blob_path}, got {len(data)}"
            )
        buffer[:length] = data

    def delete_blob(self, locator: BlobLocator) -> None:
        self._record("delete", locator)
        try:
            del self.blobs[(locator.container, locator.blob_path)]
        except KeyError:
            raise FileNotFoundError(f"Blob not found: {locator.container}/{locator.blob_path}")

    def get(self, container: str, blob_path: str) -> StoredBlob:
        return self.blobs[(container, blob_path)]
