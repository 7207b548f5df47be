"""Multistatus (PROPFIND) response parsing.

Listings are parsed incrementally so that a body cut off mid-document still
yields every ``response`` block that arrived complete. Elements are matched by
local name, which keeps the parser indifferent to the namespace prefix a
server picks for ``DAV:``.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Iterator, Optional
from urllib.parse import unquote

from .models import DavResource

LOGGER = logging.getLogger(__name__)

DAV_FILES_PREFIX = "/remote.php/dav/files/"
_ORIGIN_RE = re.compile(r"^https?://[^/]+", re.IGNORECASE)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element.iter():
        if child is not element and _local_name(child.tag) == name:
            return child
    return None


def extract_dav_relative_path(href: str) -> str:
    """Return the path of ``href`` below the user's DAV files root.

    The scheme and host are stripped, then everything up to and including the
    ``/remote.php/dav/files/<user>/`` prefix.

    Args:
        href: Decoded ``href`` value from a listing.

    Returns:
        str: Relative path without surrounding slashes, or ``""`` when the
        href does not point below a files root.
    """
    href_path = _ORIGIN_RE.sub("", href)
    marker_index = href_path.find(DAV_FILES_PREFIX)
    if marker_index < 0:
        return ""
    tail = href_path[marker_index + len(DAV_FILES_PREFIX) :]
    slash_index = tail.find("/")
    if slash_index < 0:
        return ""
    return tail[slash_index + 1 :].strip("/")


def parse_response_element(element: ET.Element) -> Optional[DavResource]:
    """Convert one ``response`` element into a :class:`DavResource`."""
    href_node = _find(element, "href")
    if href_node is None or not (href_node.text or "").strip():
        return None

    path = extract_dav_relative_path(unquote(href_node.text.strip()))
    if not path:
        return None

    content_node = _find(element, "getcontenttype")
    content_type = (content_node.text or "").strip().lower() if content_node is not None else ""

    resource_type = _find(element, "resourcetype")
    is_collection = resource_type is not None and _find(resource_type, "collection") is not None

    return DavResource(path=path, content_type=content_type, is_collection=is_collection)


def iter_multistatus(xml_text: str) -> Iterator[DavResource]:
    """Yield resources from a multistatus body, tolerating truncated input."""
    parser = ET.XMLPullParser(events=("end",))
    parser.feed(xml_text)
    try:
        for _event, element in parser.read_events():
            if _local_name(element.tag) != "response":
                continue
            resource = parse_response_element(element)
            element.clear()
            if resource is not None:
                yield resource
    except ET.ParseError as exc:
        LOGGER.warning("Multistatus body is malformed; keeping blocks parsed so far: %s", exc)


def parse_multistatus(xml_text: str) -> list[DavResource]:
    """Return every resource in a multistatus body."""
    return list(iter_multistatus(xml_text))


__all__ = [
    "DAV_FILES_PREFIX",
    "extract_dav_relative_path",
    "iter_multistatus",
    "parse_multistatus",
    "parse_response_element",
]
