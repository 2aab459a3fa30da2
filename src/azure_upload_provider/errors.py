"""Custom exceptions for azure-upload-provider.

This module defines typed exceptions so the host can tell addressing,
transfer and image codec failures apart.
"""

from typing import Optional


class ProviderError(RuntimeError):
    """Base class for all provider errors."""
    pass


# Configuration Errors
class ConfigError(ProviderError):
    """Provider configuration is missing or invalid."""
    pass


class InvalidFileRecordError(ProviderError):
    """File record lacks a field the operation needs."""
    pass


# Addressing Errors
class AddressingError(ProviderError):
    """Base class for URL <-> blob locator errors."""
    pass


class LocatorMismatchError(AddressingError):
    """URL does not belong to the container it is being resolved against.

    Usually means the record's isPrivate flag differs from the one used
    at upload time.
    """

    def __init__(self, url: str, expected_prefix: str):
        self.url = url
        self.expected_prefix = expected_prefix
        super().__init__(
            f"URL '{url}' is not inside container '{expected_prefix}'. "
            f"Check that isPrivate matches the value used at upload."
        )


# Transfer Errors
class TransferError(ProviderError):
    """Storage operation failed."""

    def __init__(self, operation: str, phase: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.phase = phase
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed for {phase} blob{detail}")


class TransferTimeoutError(TransferError):
    """Storage operation exceeded its deadline."""
    pass


# Codec Errors
class ThumbnailError(ProviderError):
    """Image could not be decoded or re-encoded for its thumbnail."""

    def __init__(self, file_hash: str, mime: str, cause: BaseException):
        self.file_hash = file_hash
        self.mime = mime
        self.cause = cause
        super().__init__(
            f"Thumbnail generation failed for {file_hash} ({mime}): {cause}\n"
            f"The original file was already uploaded."
        )
