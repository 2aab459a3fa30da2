"""Data models for files handed over by the host and the blobs they map to."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import THUMBNAIL_PREFIX


class FileRecord(BaseModel):
    """
    One uploaded file as the host describes it.

    Field names follow the host's camelCase where they differ
    (``isPrivate``); unknown host fields are kept so that copies made for
    thumbnails carry them along.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hash: str                                   # Content-derived identifier, no "/"
    ext: str = ""                               # ".png", ".pdf", ...
    mime: str = ""                              # MIME type
    buffer: Optional[bytes] = None              # Present for upload only
    size: Optional[int] = None                  # Byte length
    path: Optional[str] = None                  # Sub-path under the container
    is_private: bool = Field(False, alias="isPrivate")
    url: Optional[str] = None                   # Set by upload

    @property
    def blob_name(self) -> str:
        return self.hash + self.ext


class BlobLocator(BaseModel):
    """Address of a single blob: container, sub-path and blob name."""
    model_config = ConfigDict(frozen=True)

    container: str
    sub_path: str = ""
    blob_name: str

    @property
    def blob_path(self) -> str:
        """Blob name as the storage service sees it (sub-path included)."""
        if self.sub_path:
            return f"{self.sub_path}/{self.blob_name}"
        return self.blob_name

    def thumbnail(self) -> "BlobLocator":
        """Locator of the thumbnail stored next to this blob."""
        return BlobLocator(
            container=self.container,
            sub_path=self.sub_path,
            blob_name=THUMBNAIL_PREFIX + self.blob_name,
        )
