"""Factory for creating blob transfer instances."""

import os

from ..config import ProviderConfig
from ..errors import ConfigError
from .azure import AzureBlobTransfer
from .base import BlobTransfer
from .memory import InMemoryBlobTransfer

CONNECTION_STRING_ENV_VAR = "AZURE_STORAGE_CONNECTION_STRING"


def validate_azure_config(config: ProviderConfig) -> None:
    """
    Early validation of Azure credentials.

    Args:
        config: Provider configuration to validate

    Raises:
        ConfigError: If no way to authenticate is configured
    """
    if config.account_key:
        return
    if CONNECTION_STRING_ENV_VAR in os.environ:
        return
    # Anonymous access against an explicit endpoint
    if config.endpoint:
        return
    raise ConfigError(
        "Set accountKey (or AZURE_STORAGE_KEY) or AZURE_STORAGE_CONNECTION_STRING "
        "for Azure blob storage"
    )


def make_blob_transfer(config: ProviderConfig) -> BlobTransfer:
    """
    Create blob transfer instance based on configuration.

    Args:
        config: Provider configuration

    Returns:
        BlobTransfer for config.provider

    Raises:
        ConfigError: If configuration is invalid
        NotImplementedError: If provider is not supported
    """
    if config.provider == "memory":
        return InMemoryBlobTransfer()

    if config.provider == "azure":
        validate_azure_config(config)
        if not config.account_key and CONNECTION_STRING_ENV_VAR in os.environ:
            return AzureBlobTransfer(connection_string=os.environ[CONNECTION_STRING_ENV_VAR])
        return AzureBlobTransfer(
            account_url=config.service_url,
            account=config.account,
            account_key=config.account_key,
        )

    raise NotImplementedError(f"Provider {config.provider} not supported")
