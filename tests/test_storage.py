"""Tests for blob transfer backends and the transfer factory."""

import time
from io import BytesIO
from unittest.mock import patch

import pytest
from azure.core.exceptions import ResourceNotFoundError, ServiceResponseTimeoutError

from azure_upload_provider.config import ProviderConfig
from azure_upload_provider.constants import BLOCK_SIZE
from azure_upload_provider.errors import ConfigError
from azure_upload_provider.models import BlobLocator
from azure_upload_provider.storage import Deadline, InMemoryBlobTransfer, make_blob_transfer
from azure_upload_provider.storage.azure import AzureBlobTransfer, _block_id

from conftest import SERVICE_URL

LOCATOR = BlobLocator(container="public", sub_path="uploads", blob_name="abc123.png")


@pytest.fixture
def mock_blob_client():
    with patch("azure_upload_provider.storage.azure.BlobClient") as MockClient:
        yield MockClient


@pytest.fixture
def azure_transfer():
    return AzureBlobTransfer(account_url=SERVICE_URL, account="acct", account_key="c2VjcmV0")


class TestDeadline:
    def test_remaining_counts_down(self):
        deadline = Deadline(3600)
        assert 0 < deadline.remaining() <= 3600
        assert not deadline.expired
        deadline.check()

    def test_expired_deadline_raises(self):
        deadline = Deadline(0)
        assert deadline.expired
        with pytest.raises(TimeoutError):
            deadline.check()


class TestAzureBlobTransfer:
    def test_upload_wiring(self, mock_blob_client, azure_transfer):
        azure_transfer.upload_stream(
            Deadline(3600), BytesIO(b"data"), LOCATOR, BLOCK_SIZE, 20, "image/png", 4
        )

        mock_blob_client.assert_called_once_with(
            account_url=SERVICE_URL,
            container_name="public",
            blob_name="uploads/abc123.png",
            credential=azure_transfer.credential,
            max_block_size=BLOCK_SIZE,
            max_single_put_size=BLOCK_SIZE,
        )
        client = mock_blob_client.return_value
        client.stage_block.assert_called_once()
        assert client.stage_block.call_args.args[1] == b"data"

        kwargs = client.commit_block_list.call_args.kwargs
        assert kwargs["content_settings"].content_type == "image/png"
        assert 0 < kwargs["read_timeout"] <= 3600
        assert 0 < kwargs["connection_timeout"] <= 3600

    def test_upload_stages_block_size_chunks(self, mock_blob_client, azure_transfer):
        azure_transfer.upload_stream(
            Deadline(3600), BytesIO(b"abcdefghij"), LOCATOR, 4, 2, "text/plain", 10
        )

        client = mock_blob_client.return_value
        staged = dict(call.args[:2] for call in client.stage_block.call_args_list)
        expected_ids = [_block_id(i) for i in range(3)]
        assert [staged[block_id] for block_id in expected_ids] == [b"abcd", b"efgh", b"ij"]

        (block_list,) = client.commit_block_list.call_args.args
        assert [block.id for block in block_list] == expected_ids

    def test_empty_upload_commits_empty_block_list(self, mock_blob_client, azure_transfer):
        azure_transfer.upload_stream(
            Deadline(3600), BytesIO(b""), LOCATOR, BLOCK_SIZE, 20, "text/plain", 0
        )

        client = mock_blob_client.return_value
        client.stage_block.assert_not_called()
        assert client.commit_block_list.call_args.args == ([],)

    def test_short_stream(self, mock_blob_client, azure_transfer):
        with pytest.raises(ValueError, match="short"):
            azure_transfer.upload_stream(
                Deadline(3600), BytesIO(b"ab"), LOCATOR, BLOCK_SIZE, 20, "text/plain", 4
            )
        mock_blob_client.return_value.commit_block_list.assert_not_called()

    def test_credential_from_account_key(self, azure_transfer):
        assert azure_transfer.credential.named_key.name == "acct"
        assert azure_transfer.credential.named_key.key == "c2VjcmV0"

    def test_expired_deadline_skips_upload(self, mock_blob_client, azure_transfer):
        with pytest.raises(TimeoutError):
            azure_transfer.upload_stream(
                Deadline(0), BytesIO(b"data"), LOCATOR, BLOCK_SIZE, 20, "image/png", 4
            )
        mock_blob_client.return_value.stage_block.assert_not_called()
        mock_blob_client.return_value.commit_block_list.assert_not_called()

    def test_slow_block_fails_at_deadline(self, mock_blob_client, azure_transfer):
        """A block still in flight when the deadline passes fails the upload."""
        client = mock_blob_client.return_value
        client.stage_block.side_effect = lambda *args, **kwargs: time.sleep(1.5)

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            azure_transfer.upload_stream(
                Deadline(0.5), BytesIO(b"abcdefgh"), LOCATOR, 4, 1, "image/png", 8
            )

        assert time.monotonic() - started < 1.5
        client.commit_block_list.assert_not_called()

    def test_deadline_checked_between_blocks(self, mock_blob_client, azure_transfer):
        client = mock_blob_client.return_value
        client.stage_block.side_effect = lambda *args, **kwargs: time.sleep(0.3)

        with pytest.raises(TimeoutError):
            azure_transfer.upload_stream(
                Deadline(0.5), BytesIO(b"a" * 16), LOCATOR, 4, 1, "text/plain", 16
            )

        assert client.stage_block.call_count < 4
        client.commit_block_list.assert_not_called()

    def test_sdk_timeout_becomes_timeout_error(self, mock_blob_client, azure_transfer):
        mock_blob_client.return_value.stage_block.side_effect = ServiceResponseTimeoutError("slow")
        with pytest.raises(TimeoutError):
            azure_transfer.upload_stream(
                Deadline(3600), BytesIO(b"data"), LOCATOR, BLOCK_SIZE, 20, "image/png", 4
            )

    def test_download_fills_buffer(self, mock_blob_client, azure_transfer):
        client = mock_blob_client.return_value
        client.download_blob.return_value.chunks.return_value = iter([b"he", b"llo"])
        buffer = bytearray(5)

        azure_transfer.download_to_buffer(Deadline(3600), buffer, LOCATOR, 0, 5)

        assert bytes(buffer) == b"hello"
        kwargs = client.download_blob.call_args.kwargs
        assert kwargs["offset"] == 0
        assert kwargs["length"] == 5
        assert 0 < kwargs["read_timeout"] <= 3600

    def test_download_short_read(self, mock_blob_client, azure_transfer):
        mock_blob_client.return_value.download_blob.return_value.chunks.return_value = iter([b"hel"])
        with pytest.raises(ValueError, match="Expected 5 bytes"):
            azure_transfer.download_to_buffer(Deadline(3600), bytearray(5), LOCATOR, 0, 5)

    def test_download_long_read(self, mock_blob_client, azure_transfer):
        mock_blob_client.return_value.download_blob.return_value.chunks.return_value = iter([b"hello!"])
        with pytest.raises(ValueError, match="Expected 5 bytes"):
            azure_transfer.download_to_buffer(Deadline(3600), bytearray(5), LOCATOR, 0, 5)

    def test_download_checks_deadline_between_chunks(self, mock_blob_client, azure_transfer):
        def slow_chunks():
            yield b"he"
            time.sleep(0.6)
            yield b"llo"

        mock_blob_client.return_value.download_blob.return_value.chunks.return_value = slow_chunks()
        with pytest.raises(TimeoutError):
            azure_transfer.download_to_buffer(Deadline(0.5), bytearray(5), LOCATOR, 0, 5)

    def test_delete(self, mock_blob_client, azure_transfer):
        azure_transfer.delete_blob(LOCATOR)
        mock_blob_client.return_value.delete_blob.assert_called_once_with()

    def test_sdk_errors_propagate(self, mock_blob_client, azure_transfer):
        mock_blob_client.return_value.delete_blob.side_effect = ResourceNotFoundError("missing")
        with pytest.raises(ResourceNotFoundError):
            azure_transfer.delete_blob(LOCATOR)

    def test_connection_string(self, mock_blob_client):
        transfer = AzureBlobTransfer(connection_string="UseDevelopmentStorage=true")

        transfer.delete_blob(LOCATOR)

        mock_blob_client.from_connection_string.assert_called_once_with(
            "UseDevelopmentStorage=true",
            container_name="public",
            blob_name="uploads/abc123.png",
            max_block_size=BLOCK_SIZE,
            max_single_put_size=BLOCK_SIZE,
        )

    def test_requires_url_or_connection_string(self):
        with pytest.raises(ValueError):
            AzureBlobTransfer()


class TestInMemoryBlobTransfer:
    def test_upload_download_delete(self):
        transfer = InMemoryBlobTransfer()
        transfer.upload_stream(Deadline(60), BytesIO(b"abcdef"), LOCATOR, BLOCK_SIZE, 1, "text/plain", 6)

        buffer = bytearray(3)
        transfer.download_to_buffer(Deadline(60), buffer, LOCATOR, 2, 3)
        transfer.delete_blob(LOCATOR)

        assert bytes(buffer) == b"cde"
        assert transfer.blobs == {}
        assert [op for op, _, _ in transfer.calls] == ["upload", "download", "delete"]

    def test_delete_missing(self):
        with pytest.raises(FileNotFoundError):
            InMemoryBlobTransfer().delete_blob(LOCATOR)


class TestMakeBlobTransfer:
    def test_memory(self, settings):
        config = ProviderConfig.model_validate({**settings, "provider": "memory"})
        assert isinstance(make_blob_transfer(config), InMemoryBlobTransfer)

    def test_azure_with_key(self, settings):
        transfer = make_blob_transfer(ProviderConfig.model_validate(settings))
        assert isinstance(transfer, AzureBlobTransfer)
        assert transfer.account_url == SERVICE_URL
        assert transfer.connection_string is None

    def test_azure_with_connection_string(self, monkeypatch):
        monkeypatch.setenv("AZURE_STORAGE_CONNECTION_STRING", "UseDevelopmentStorage=true")
        config = ProviderConfig.model_validate({"account": "acct", "containerName": "media"})

        transfer = make_blob_transfer(config)

        assert transfer.connection_string == "UseDevelopmentStorage=true"

    def test_azure_without_credentials(self):
        config = ProviderConfig.model_validate({"account": "acct", "containerName": "media"})
        with pytest.raises(ConfigError, match="accountKey"):
            make_blob_transfer(config)
