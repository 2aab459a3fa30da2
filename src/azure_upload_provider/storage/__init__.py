"""Storage package for blob transfer backends."""

from .base import BlobTransfer, Deadline
from .factory import make_blob_transfer
from .memory import InMemoryBlobTransfer

__all__ = ["BlobTransfer", "Deadline", "InMemoryBlobTransfer", "make_blob_transfer"]
