"""Catalog data models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

LOCAL_SOURCE = "local"
NEXTCLOUD_SOURCE = "nextcloud"
HANDLE_SCHEME = "blob:"


class ImageEntry(BaseModel):
    """One discoverable image, independent of where it came from.

    Attributes:
        id: Catalog-unique identifier, ``"<source>:<path>"``.
        source: Origin tag such as ``local`` or ``nextcloud``.
        path: Slash-separated path relative to the origin's root.
        name: Display name (basename).
        locator: Opaque reference used to fetch the bytes lazily; a ``blob:``
            handle for local files or a proxy URL for remote ones.
        size_bytes: File size for local entries.
        modified_at: Modification time for local entries.
        content_type: MIME type when known.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    path: str
    name: str
    locator: str
    size_bytes: Optional[int] = None
    modified_at: Optional[datetime] = None
    content_type: Optional[str] = None

    @classmethod
    def create(cls, source: str, path: str, locator: str, **extra: object) -> "ImageEntry":
        """Build an entry whose id and name derive from ``source`` and ``path``."""
        name = path.rsplit("/", 1)[-1] or path
        return cls(
            id=f"{source}:{path}",
            source=source,
            path=path,
            name=name,
            locator=locator,
            **extra,
        )

    @property
    def has_handle(self) -> bool:
        """Return whether the locator is a locally issued byte handle."""
        return self.locator.startswith(HANDLE_SCHEME)

    @property
    def remote(self) -> bool:
        return not self.has_handle


__all__ = ["ImageEntry", "LOCAL_SOURCE", "NEXTCLOUD_SOURCE", "HANDLE_SCHEME"]
