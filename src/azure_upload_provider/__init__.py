"""Azure Blob Storage upload provider for content-management hosts."""

from .config import ProviderConfig, load_provider_config
from .models import BlobLocator, FileRecord
from .provider import AUTH_FIELDS, DISPLAY_NAME, PROVIDER_NAME, AzureUploadProvider, init

__all__ = [
    "AUTH_FIELDS",
    "AzureUploadProvider",
    "BlobLocator",
    "DISPLAY_NAME",
    "FileRecord",
    "PROVIDER_NAME",
    "ProviderConfig",
    "init",
    "load_provider_config",
]
