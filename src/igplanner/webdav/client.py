"""Nextcloud WebDAV client used for crawling and proxying files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional
from urllib.parse import quote

import requests

from igplanner.config.models import NextcloudSettings

from .crawler import crawl_images
from .errors import (
    DavConfigurationError,
    DavPathError,
    DavResponseError,
    DavTimeoutError,
    DavTransportError,
)
from .models import RemoteImage
from .parser import DAV_FILES_PREFIX

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PROPFIND_BODY = """<?xml version="1.0"?>
<d:propfind xmlns:d="DAV:">
  <d:prop>
    <d:resourcetype />
    <d:getcontenttype />
  </d:prop>
</d:propfind>"""
_CHUNK_SIZE = 64 * 1024
FILE_PROXY_ROUTE = "/api/nextcloud/file"
# Mark characters left unescaped in proxied path values.
_URI_SAFE = "!~*'()"


def _is_success(status: int) -> bool:
    return 200 <= status < 300


def proxy_url(relative_path: str) -> str:
    """Return the same-origin URL serving ``relative_path`` through the file proxy."""
    return f"{FILE_PROXY_ROUTE}?path={quote(relative_path, safe=_URI_SAFE)}"


def normalize_dir(path: str) -> str:
    """Return ``path`` with exactly one leading slash and no trailing slash."""
    return "/" + (path or "").strip("/")


@dataclass(slots=True)
class RemoteFile:
    """Open streaming download of a remote file.

    Attributes:
        content_type: Content type reported by the share, or a binary default.
        response: Underlying streaming response; close it when done.
    """

    content_type: str
    response: requests.Response

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the body in chunks and close the response afterwards."""
        try:
            for chunk in self.response.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    yield chunk
        finally:
            self.response.close()

    def read(self) -> bytes:
        return b"".join(self.iter_bytes())

    def close(self) -> None:
        self.response.close()


class NextcloudClient:
    """Talk to a Nextcloud share over WebDAV with server-held credentials."""

    def __init__(
        self,
        settings: NextcloudSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialise the client.

        Args:
            settings: Remote share configuration.
            session: Optional requests session; one is created when omitted.

        Raises:
            DavConfigurationError: If base URL, username, or password is missing.
        """
        if not settings.is_configured:
            raise DavConfigurationError(
                "Missing Nextcloud configuration (base URL, username, app password)."
            )
        self._settings = settings
        self._session = session or requests.Session()
        self._auth = (settings.username, settings.app_password)

    @property
    def root(self) -> str:
        """Return the configured root directory on the share."""
        return normalize_dir(self._settings.dir)

    def build_dav_url(self, raw_path: str) -> str:
        """Return the encoded DAV URL for a path below the user's files root."""
        clean = "/" + (raw_path or "").lstrip("/")
        encoded = "/".join(quote(part, safe="") for part in clean.split("/"))
        user = quote(self._settings.username, safe="")
        base = self._settings.base_url.rstrip("/")
        return f"{base}{DAV_FILES_PREFIX}{user}{encoded}"

    def propfind(self, directory: str) -> str:
        """List the immediate children of ``directory`` and return the XML body.

        Raises:
            DavResponseError: If the server answers with a non-success status.
            DavTransportError: If the request fails or times out.
        """
        url = self.build_dav_url(directory)
        LOGGER.debug("PROPFIND %s", url)
        response = self._request(
            "PROPFIND",
            url,
            data=PROPFIND_BODY.encode("utf-8"),
            headers={"Depth": "1", "Content-Type": "application/xml"},
        )
        if not _is_success(response.status_code):
            raise DavResponseError(
                f"Nextcloud PROPFIND failed ({response.status_code}): {response.text}",
                status=response.status_code,
                body=response.text,
            )
        return response.text

    def crawl(
        self,
        *,
        max_images: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> list[RemoteImage]:
        """Crawl the configured root using the configured bounds by default."""
        return crawl_images(
            self,
            self.root,
            max_images=self._settings.max_images if max_images is None else max_images,
            max_depth=self._settings.max_depth if max_depth is None else max_depth,
        )

    def sample_images(self) -> list[RemoteImage]:
        """Crawl the root and keep at most ``sample_limit`` images."""
        return self.crawl()[: self._settings.sample_limit]

    def open_file(self, relative_path: str) -> RemoteFile:
        """Start streaming a file below the configured root.

        Args:
            relative_path: Path relative to the root, as returned by a crawl.

        Returns:
            RemoteFile: Streaming download; the caller must consume or close it.

        Raises:
            DavPathError: If the path is empty or contains ``..`` segments.
            DavResponseError: If the server answers with a non-success status.
            DavTransportError: If the request fails or times out.
        """
        segments = [part for part in (relative_path or "").split("/") if part]
        if not segments:
            raise DavPathError("Missing path query.")
        if any(part == ".." for part in segments):
            raise DavPathError(f"Path escapes the share root: {relative_path}")

        url = self.build_dav_url(f"{self.root}/{'/'.join(segments)}")
        response = self._request("GET", url, stream=True)
        if not _is_success(response.status_code):
            body = response.text or "Could not fetch file."
            response.close()
            raise DavResponseError(body, status=response.status_code, body=body)
        if response.raw is None:
            response.close()
            raise DavResponseError(
                "Could not fetch file.", status=502, body="Could not fetch file."
            )
        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        return RemoteFile(content_type=content_type, response=response)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._session.request(
                method,
                url,
                auth=self._auth,
                timeout=self._settings.timeout_seconds,
                **kwargs,
            )
        except requests.Timeout as exc:
            raise DavTimeoutError(
                f"Nextcloud request timed out after {self._settings.timeout_seconds}s: {url}"
            ) from exc
        except requests.RequestException as exc:
            raise DavTransportError(f"Nextcloud request failed: {exc}") from exc


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "FILE_PROXY_ROUTE",
    "NextcloudClient",
    "PROPFIND_BODY",
    "RemoteFile",
    "normalize_dir",
    "proxy_url",
]
