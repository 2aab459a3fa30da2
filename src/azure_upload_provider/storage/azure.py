"""Azure blob storage transfer implementation."""

import base64
import logging
from concurrent.futures import ALL_COMPLETED, FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import BinaryIO, Dict, Optional, Set, Union

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ServiceRequestTimeoutError, ServiceResponseTimeoutError
from azure.storage.blob import BlobBlock, BlobClient, ContentSettings

from ..constants import BLOCK_SIZE
from ..models import BlobLocator
from .base import Deadline

logger = logging.getLogger(__name__)

_SDK_TIMEOUTS = (ServiceRequestTimeoutError, ServiceResponseTimeoutError)


def _request_timeouts(deadline: Deadline) -> Dict[str, int]:
    """Client-side socket timeouts for one request, capped by the deadline."""
    deadline.check()
    # Whole seconds; 0 would disable the timeout
    seconds = max(1, int(deadline.remaining()))
    return {"connection_timeout": seconds, "read_timeout": seconds}


def _block_id(index: int) -> str:
    # Block ids must all have the same length
    return base64.b64encode(f"{index:08d}".encode()).decode()


def _drain(pending: Set[Future], deadline: Deadline, return_when: str) -> Set[Future]:
    """Wait for staged blocks, never past the deadline."""
    if not pending:
        return pending
    done, not_done = wait(pending, timeout=deadline.remaining(), return_when=return_when)
    for future in done:
        future.result()
    if not done or (return_when == ALL_COMPLETED and not_done):
        raise TimeoutError(f"Transfer deadline of {deadline.seconds:g}s exceeded")
    return not_done


class AzureBlobTransfer:
    """
    Azure Blob Storage transfer.

    A BlobClient is built per call from the immutable account URL and
    credential; no client state is shared between operations. Uploads
    stage blocks and downloads read chunks one by one so the deadline is
    checked throughout the transfer.
    """

    def __init__(
        self,
        account_url: Optional[str] = None,
        account: Optional[str] = None,
        account_key: Optional[str] = None,
        connection_string: Optional[str] = None,
    ):
        """
        Initialize Azure blob transfer.

        Args:
            account_url: Blob service root (https://<account>.blob.core.windows.net)
            account: Storage account name
            account_key: Shared key for the account
            connection_string: Azure Storage connection string, used instead
                of account_url/account_key when given
        """
        if not connection_string and not account_url:
            raise ValueError("account_url or connection_string required for Azure blob storage")

        self.account_url = account_url
        self.connection_string = connection_string
        self.credential: Union[AzureNamedKeyCredential, None] = None
        if account and account_key:
            self.credential = AzureNamedKeyCredential(account, account_key)

    def _blob_client(self, locator: BlobLocator, block_size: int = BLOCK_SIZE) -> BlobClient:
        options = {
            "max_block_size": block_size,
            "max_single_put_size": block_size,
        }
        if self.connection_string:
            return BlobClient.from_connection_string(
                self.connection_string,
                container_name=locator.container,
                blob_name=locator.blob_path,
                **options,
            )
        return BlobClient(
            account_url=self.account_url,
            container_name=locator.container,
            blob_name=locator.blob_path,
            credential=self.credential,
            **options,
        )

    @staticmethod
    def _stage(blob_client: BlobClient, deadline: Deadline, block_id: str, data: bytes) -> None:
        blob_client.stage_block(block_id, data, length=len(data), **_request_timeouts(deadline))

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
        Upload stream as a block blob in block_size chunks.

        At most ``concurrency`` blocks are in flight. The block list is
        committed only if every block was staged before the deadline.
        """
        blob_client = self._blob_client(locator, block_size)
        logger.debug(
            "Uploading %d bytes to %s/%s (concurrency=%d)",
            length, locator.container, locator.blob_path, concurrency,
        )

        block_ids = []
        pending: Set[Future] = set()
        pool = ThreadPoolExecutor(max_workers=concurrency)
        try:
            remaining = length
            while remaining > 0:
                deadline.check()
                data = stream.read(min(block_size, remaining))
                if not data:
                    raise ValueError(
                        f"Stream for {locator.blob_path} ended {remaining} bytes short of {length}"
                    )
                block_id = _block_id(len(block_ids))
                block_ids.append(block_id)
                pending.add(pool.submit(self._stage, blob_client, deadline, block_id, data))
                remaining -= len(data)
                if len(pending) >= concurrency:
                    pending = _drain(pending, deadline, FIRST_COMPLETED)
            _drain(pending, deadline, ALL_COMPLETED)

            blob_client.commit_block_list(
                [BlobBlock(block_id=block_id) for block_id in block_ids],
                content_settings=ContentSettings(content_type=content_type),
                **_request_timeouts(deadline),
            )
        except _SDK_TIMEOUTS as e:
            raise TimeoutError(str(e)) from e
        finally:
            # A block stuck past the deadline must not hold up the caller
            pool.shutdown(wait=False, cancel_futures=True)

    def download_to_buffer(
        self,
        deadline: Deadline,
        buffer: bytearray,
        locator: BlobLocator,
        offset: int,
        length: int,
    ) -> None:
        """Download a byte range of a blob into buffer, chunk by chunk."""
        blob_client = self._blob_client(locator)
        logger.debug(
            "Downloading %d bytes from %s/%s at offset %d",
            length, locator.container, locator.blob_path, offset,
        )
        received = 0
        try:
            downloader = blob_client.download_blob(
                offset=offset,
                length=length,
                **_request_timeouts(deadline),
            )
            for chunk in downloader.chunks():
                deadline.check()
                end = received + len(chunk)
                if end > length:
                    raise ValueError(
                        f"Expected {length} bytes from {locator.blob_path}, got more"
                    )
                buffer[received:end] = chunk
                received = end
        except _SDK_TIMEOUTS as e:
            raise TimeoutError(str(e)) from e

        if received != length:
            raise ValueError(
                f"Expected {length} bytes from {locator.blob_path}, got {received}"
            )

    def delete_blob(self, locator: BlobLocator) -> None:
        """Delete a blob."""
        logger.debug("Deleting %s/%s", locator.container, locator.blob_path)
        self._blob_client(locator).delete_blob()
