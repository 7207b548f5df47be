"""Records produced while crawling the remote share."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DavResource:
    """One ``response`` block of a multistatus listing.

    Attributes:
        path: Server-relative path below the user's files root, decoded,
            without leading or trailing slashes.
        content_type: Lowercased ``getcontenttype`` value, empty when absent.
        is_collection: Whether ``resourcetype`` contains ``collection``.
    """

    path: str
    content_type: str
    is_collection: bool


@dataclass(frozen=True, slots=True)
class RemoteImage:
    """Image discovered by a crawl, relative to the crawl's start directory."""

    path: str
    name: str


__all__ = ["DavResource", "RemoteImage"]
