"""Azure Storage upload provider.

Stores host uploads in one of two blob containers (public or private),
adds a thumbnail next to PNG/JPEG/BMP images, and resolves stored URLs
back to blobs for delete and download.

Example:
    >>> provider = init({"account": "acct", "accountKey": "...",
    ...                  "containerName": "media"})
    >>> record = FileRecord(hash="abc123", ext=".png", mime="image/png",
    ...                     buffer=png_bytes, size=len(png_bytes))
    >>> provider.upload(record)
    >>> record.url
    'https://acct.blob.core.windows.net/media/abc123.png'
"""

import logging
from contextlib import contextmanager
from io import BytesIO
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Union

from .config import ProviderConfig, build_config
from .constants import (
    BLOCK_SIZE,
    DISPLAY_NAME,
    PROVIDER_NAME,
    TRANSFER_TIMEOUT_SECONDS,
)
from .errors import (
    AddressingError,
    InvalidFileRecordError,
    ProviderError,
    ThumbnailError,
    TransferError,
    TransferTimeoutError,
)
from .locator import locate, parse_url, to_url
from .models import BlobLocator, FileRecord
from .storage import BlobTransfer, Deadline, make_blob_transfer
from .thumbnail import ImageCodec, PillowImageCodec, derive_thumbnail, is_thumbnail_eligible

logger = logging.getLogger(__name__)

PHASE_PRIMARY = "primary"
PHASE_THUMBNAIL = "thumbnail"

# Settings form shown by the host
AUTH_FIELDS: Dict[str, Dict[str, str]] = {
    "account": {"label": "Account name", "type": "text"},
    "accountKey": {"label": "Secret Access Key", "type": "text"},
    "containerName": {"label": "The name of the blob container", "type": "text"},
    "privateContainerName": {
        "label": "The name of the blob container to use for private files",
        "type": "text",
    },
    "defaultPath": {"label": "The path to use when there is none being specified.", "type": "text"},
    "cdnName": {"label": "Write down the host of the CDN (if you use any)", "type": "text"},
    "maxWidth": {"label": "Thumb max width if uploading image", "type": "number"},
    "maxConcurrent": {"label": "The maximum concurrent uploads to Azure", "type": "number"},
}

FileLike = Union[FileRecord, MutableMapping[str, Any]]


@contextmanager
def _transfer_phase(operation: str, phase: str) -> Iterator[None]:
    """Attach operation and phase to storage failures."""
    try:
        yield
    except ProviderError:
        raise
    except TimeoutError as e:
        logger.error("%s of %s blob timed out: %s", operation, phase, e)
        raise TransferTimeoutError(operation, phase, e) from e
    except Exception as e:
        logger.error("%s of %s blob failed: %s", operation, phase, e)
        raise TransferError(operation, phase, e) from e


def _as_record(file: FileLike) -> FileRecord:
    if isinstance(file, FileRecord):
        return file
    try:
        return FileRecord.model_validate(dict(file))
    except ValueError as e:
        raise InvalidFileRecordError(f"Invalid file record: {e}") from e


class AzureUploadProvider:
    """
    Upload, delete and download host files in Azure Blob Storage.

    Each call works on its own record; the provider holds only immutable
    configuration, so calls may run concurrently from several threads.
    """

    def __init__(
        self,
        config: Union[ProviderConfig, Mapping[str, Any]],
        transfer: Optional[BlobTransfer] = None,
        codec: Optional[ImageCodec] = None,
    ):
        """
        Initialize the provider.

        Args:
            config: ProviderConfig or the raw settings mapping from the host
            transfer: Blob transfer backend (built from config if omitted)
            codec: Image backend for thumbnails (Pillow if omitted)
        """
        self.config = build_config(config)
        self.transfer = transfer if transfer is not None else make_blob_transfer(self.config)
        self.codec = codec if codec is not None else PillowImageCodec()
        self.service_url = self.config.service_url
        self.cdn = self.config.cdn_name

    def _deadline(self) -> Deadline:
        return Deadline(TRANSFER_TIMEOUT_SECONDS)

    def _resolve(self, file: FileRecord) -> BlobLocator:
        if not file.url:
            raise AddressingError(f"File {file.hash} has no url; was it uploaded?")
        return parse_url(
            file.url,
            self.service_url,
            self.config.container_for(file.is_private),
            self.cdn,
        )

    def _put(self, file: FileRecord, phase: str) -> None:
        if file.buffer is None:
            raise InvalidFileRecordError(f"File {file.hash} has no buffer to upload")
        if "/" in file.blob_name:
            # A slash would split the name into sub-path and blob name on delete
            raise InvalidFileRecordError(
                f"File name {file.blob_name!r} must not contain '/'; use path for folders"
            )

        locator = locate(
            self.service_url,
            self.config.container_for(file.is_private),
            file.blob_name,
            file.path,
            self.config.default_path,
        )
        file.url = to_url(locator, self.service_url, self.cdn)

        with _transfer_phase("upload", phase):
            self.transfer.upload_stream(
                self._deadline(),
                BytesIO(file.buffer),
                locator,
                BLOCK_SIZE,
                self.config.max_concurrent,
                file.mime,
                len(file.buffer),
            )
        logger.info("Uploaded %s blob %s/%s", phase, locator.container, locator.blob_path)

    def upload(self, file: FileLike) -> None:
        """
        Upload a file and, for PNG/JPEG/BMP, its thumbnail.

        Sets ``url`` on the given record before the transfer starts. The
        thumbnail is uploaded only after the original succeeded; its url
        is never written to the given record.

        Args:
            file: FileRecord, or a host mapping (its "url" key is updated)

        Raises:
            InvalidFileRecordError: If the record has no buffer or its name contains '/'
            TransferError: If a transfer fails (no rollback of the original)
            ThumbnailError: If the image can't be thumbnailed
        """
        record = _as_record(file)
        try:
            self._put(record, PHASE_PRIMARY)

            if is_thumbnail_eligible(record.mime):
                try:
                    thumb = derive_thumbnail(record, self.config.max_width, self.codec)
                except ThumbnailError:
                    logger.error("Thumbnail failed for %s; original stays at %s", record.hash, record.url)
                    raise
                self._put(thumb, PHASE_THUMBNAIL)
        finally:
            if record is not file and record.url is not None:
                file["url"] = record.url

    def delete(self, file: FileLike) -> None:
        """
        Delete a file and, for PNG/JPEG/BMP, its thumbnail.

        The thumbnail delete runs only after the original was deleted.

        Raises:
            AddressingError: If the url is missing or not in the file's container
            TransferError: If a delete fails
        """
        record = _as_record(file)
        locator = self._resolve(record)

        with _transfer_phase("delete", PHASE_PRIMARY):
            self.transfer.delete_blob(locator)

        if is_thumbnail_eligible(record.mime):
            with _transfer_phase("delete", PHASE_THUMBNAIL):
                self.transfer.delete_blob(locator.thumbnail())

        logger.info("Deleted %s/%s", locator.container, locator.blob_path)

    def download(self, file: FileLike) -> bytes:
        """
        Download a file's content. Thumbnails are never downloaded.

        ``size`` must be the exact byte length of the stored blob.

        Returns:
            The blob content

        Raises:
            AddressingError: If the url is missing or not in the file's container
            InvalidFileRecordError: If size is missing or negative
            TransferError: If the download fails or returns a different size
        """
        record = _as_record(file)
        locator = self._resolve(record)

        if record.size is None or record.size < 0:
            raise InvalidFileRecordError(f"File {record.hash} needs its exact size to download")
        if record.size == 0:
            return b""

        buffer = bytearray(record.size)
        with _transfer_phase("download", PHASE_PRIMARY):
            self.transfer.download_to_buffer(self._deadline(), buffer, locator, 0, record.size)

        logger.debug("Downloaded %d bytes from %s/%s", record.size, locator.container, locator.blob_path)
        return bytes(buffer)


def init(
    config: Union[ProviderConfig, Mapping[str, Any]],
    transfer: Optional[BlobTransfer] = None,
) -> AzureUploadProvider:
    """Entry point called by the host with the saved provider settings."""
    provider = AzureUploadProvider(config, transfer=transfer)
    logger.debug(
        "Initialized %s provider for containers %s/%s",
        PROVIDER_NAME, provider.config.container_name, provider.config.private_container_name,
    )
    return provider


__all__ = [
    "AUTH_FIELDS",
    "AzureUploadProvider",
    "DISPLAY_NAME",
    "PROVIDER_NAME",
    "init",
]
