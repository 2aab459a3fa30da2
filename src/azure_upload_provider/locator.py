"""Conversion between blob locators and the URLs handed back to the host.

A URL is always ``<container url>[/<sub path>]/<blob name>``, where the
container url is ``<service url>/<container>``. When a CDN is configured
the service url at the start of the URL is swapped for the CDN host.
``parse_url`` undoes both steps so that any URL produced here resolves to
the exact blob it was produced for.
"""

import logging
from typing import Optional

from .errors import LocatorMismatchError
from .models import BlobLocator

logger = logging.getLogger(__name__)


def container_url(service_url: str, container: str) -> str:
    """Base URL of a container."""
    return f"{service_url}/{container}"


def effective_sub_path(path: Optional[str], default_path: Optional[str] = None) -> str:
    """
    Sub-path a file is stored under.

    Args:
        path: Path requested for the file
        default_path: Configured fallback used when path is empty

    Returns:
        The sub-path with empty segments removed, or "" for none
    """
    chosen = path or default_path or ""
    return "/".join(segment for segment in chosen.split("/") if segment)


def build_url(base_url: str, sub_path: str, blob_name: str) -> str:
    parts = [base_url]
    if sub_path:
        parts.append(sub_path)
    parts.append(blob_name)
    return "/".join(parts)


def apply_cdn(url: str, service_url: str, cdn: Optional[str]) -> str:
    """Replace the service root at the start of url with the CDN host."""
    if cdn and url.startswith(service_url):
        return cdn + url[len(service_url):]
    return url


def strip_cdn(url: str, service_url: str, cdn: Optional[str]) -> str:
    """Undo apply_cdn; no-op when no CDN is set or url doesn't use it."""
    if cdn and url.startswith(cdn) and not url.startswith(service_url):
        return service_url + url[len(cdn):]
    return url


def locate(
    service_url: str,
    container: str,
    blob_name: str,
    path: Optional[str] = None,
    default_path: Optional[str] = None,
) -> BlobLocator:
    """Locator for a new blob."""
    return BlobLocator(
        container=container,
        sub_path=effective_sub_path(path, default_path),
        blob_name=blob_name,
    )


def to_url(locator: BlobLocator, service_url: str, cdn: Optional[str] = None) -> str:
    """Public URL of a blob, CDN-rewritten if a CDN is configured."""
    url = build_url(container_url(service_url, locator.container), locator.sub_path, locator.blob_name)
    return apply_cdn(url, service_url, cdn)


def parse_url(
    url: str,
    service_url: str,
    container: str,
    cdn: Optional[str] = None,
) -> BlobLocator:
    """
    Recover the blob locator from a URL produced by to_url.

    Args:
        url: URL stored on the file record
        service_url: Root URL of the blob service
        container: Container the file is expected in
        cdn: Configured CDN host, if any

    Returns:
        BlobLocator for the blob the URL points to

    Raises:
        LocatorMismatchError: If the URL is not inside the container
    """
    base = container_url(service_url, container)
    resolved = strip_cdn(url, service_url, cdn)

    # Trailing slash keeps "public" from matching "public-private"
    prefix = base + "/"
    if not resolved.startswith(prefix):
        raise LocatorMismatchError(url, base)

    segments = [s for s in resolved[len(prefix):].split("/") if s]
    if not segments:
        raise LocatorMismatchError(url, base)

    locator = BlobLocator(
        container=container,
        sub_path="/".join(segments[:-1]),
        blob_name=segments[-1],
    )
    logger.debug("Resolved %s -> %s/%s", url, container, locator.blob_path)
    return locator
