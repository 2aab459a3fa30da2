"""Shared test fixtures and utilities."""

from io import BytesIO

import pytest
from PIL import Image

from azure_upload_provider.provider import AzureUploadProvider
from azure_upload_provider.storage import InMemoryBlobTransfer

SERVICE_URL = "https://acct.blob.core.windows.net"
CDN = "https://cdn.example.com"


@pytest.fixture(autouse=True)
def clean_azure_env(monkeypatch):
    """Keep credentials from the developer's shell out of the tests."""
    for var in ("AZURE_STORAGE_ACCOUNT", "AZURE_STORAGE_KEY", "AZURE_STORAGE_CONNECTION_STRING"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings():
    """Provider settings as the host stores them."""
    return {
        "account": "acct",
        "accountKey": "c2VjcmV0",
        "containerName": "public",
        "privateContainerName": "private",
    }


@pytest.fixture
def transfer():
    return InMemoryBlobTransfer()


@pytest.fixture
def make_provider(settings, transfer):
    """Factory fixture for providers backed by the in-memory transfer."""
    def _make(**overrides):
        return AzureUploadProvider({**settings, **overrides}, transfer=transfer)
    return _make


@pytest.fixture
def make_image():
    """Factory fixture producing encoded images."""
    def _make(fmt: str = "PNG", size=(200, 100), mode: str = "RGB") -> bytes:
        out = BytesIO()
        Image.new(mode, size).save(out, format=fmt)
        return out.getvalue()
    return _make
