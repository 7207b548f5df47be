"""Nextcloud WebDAV discovery and file proxy."""

from .client import (
    DEFAULT_CONTENT_TYPE,
    FILE_PROXY_ROUTE,
    NextcloudClient,
    RemoteFile,
    normalize_dir,
    proxy_url,
)
from .crawler import crawl_images
from .errors import (
    DavConfigurationError,
    DavError,
    DavPathError,
    DavResponseError,
    DavTimeoutError,
    DavTransportError,
)
from .models import DavResource, RemoteImage
from .parser import extract_dav_relative_path, parse_multistatus

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "FILE_PROXY_ROUTE",
    "DavConfigurationError",
    "DavError",
    "DavPathError",
    "DavResource",
    "DavResponseError",
    "DavTimeoutError",
    "DavTransportError",
    "NextcloudClient",
    "RemoteFile",
    "RemoteImage",
    "crawl_images",
    "extract_dav_relative_path",
    "normalize_dir",
    "parse_multistatus",
    "proxy_url",
]
