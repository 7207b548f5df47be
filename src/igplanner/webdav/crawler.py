"""Breadth-first, bounded crawl of a WebDAV directory tree."""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol

from .models import RemoteImage
from .parser import iter_multistatus

LOGGER = logging.getLogger(__name__)


class DirectoryLister(Protocol):
    """Anything that can return the multistatus body for one directory."""

    def propfind(self, directory: str) -> str:  # pragma: no cover - protocol
        ...


def _relative_to(path: str, root: str) -> str:
    if not root:
        return path
    if path == root:
        return ""
    if path.startswith(root + "/"):
        return path[len(root) + 1 :].lstrip("/")
    return path


def crawl_images(
    lister: DirectoryLister,
    start_dir: str,
    *,
    max_images: int,
    max_depth: int,
) -> list[RemoteImage]:
    """Collect image files below ``start_dir`` in breadth-first order.

    Each directory is listed once with a depth-1 ``PROPFIND``. Collections are
    expanded while their depth is below ``max_depth``; files are admitted when
    their content type starts with ``image/``. The crawl stops as soon as
    ``max_images`` images have been collected.

    Args:
        lister: Object issuing the listing requests.
        start_dir: Directory the crawl starts from.
        max_images: Maximum number of images to return.
        max_depth: Deepest directory level (relative to ``start_dir``) listed.

    Returns:
        list[RemoteImage]: Images with paths relative to ``start_dir``.

    Raises:
        DavError: Propagated from ``lister``; no partial result is returned.
    """
    root = "/" + (start_dir or "").strip("/")
    root_key = root.lstrip("/")
    queue: deque[tuple[str, int]] = deque([(root, 0)])
    visited: set[str] = {root}
    images: list[RemoteImage] = []
    listings = 0

    while queue and len(images) < max_images:
        directory, depth = queue.popleft()
        listings += 1
        directory_key = directory.lstrip("/")

        for resource in iter_multistatus(lister.propfind(directory)):
            if resource.path == directory_key:
                continue

            if resource.is_collection:
                child = "/" + resource.path
                if depth < max_depth and child not in visited:
                    visited.add(child)
                    queue.append((child, depth + 1))
                continue

            if not resource.content_type.startswith("image/"):
                continue

            relative = _relative_to(resource.path, root_key)
            if not relative:
                continue

            images.append(RemoteImage(path=relative, name=relative.rsplit("/", 1)[-1]))
            if len(images) >= max_images:
                break

    LOGGER.info(
        "Crawled %s: %d image(s) from %d listing(s), %d director(ies) pending.",
        root,
        len(images),
        listings,
        len(queue),
    )
    return images


__all__ = ["DirectoryLister", "crawl_images"]
