"""Byte handles issued for locally enumerated images."""

from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path
from typing import Iterable

from .models import HANDLE_SCHEME

LOGGER = logging.getLogger(__name__)


class HandleError(Exception):
    """Raised when a handle is unknown or has already been released."""


class HandleRegistry:
    """Issue, resolve, and release ephemeral handles for local files.

    A handle is a ``blob:<uuid>`` token standing in for a local file. Each
    handle must be released exactly once; releasing it again raises
    :class:`HandleError` so leaks and double releases both surface.
    """

    def __init__(self) -> None:
        self._paths: dict[str, Path] = {}
        self._lock = threading.Lock()
        self.issued_count = 0
        self.released_count = 0

    def issue(self, path: Path) -> str:
        """Return a new handle for ``path``."""
        handle = f"{HANDLE_SCHEME}{uuid.uuid4()}"
        with self._lock:
            self._paths[handle] = path
            self.issued_count += 1
        return handle

    def resolve(self, handle: str) -> Path:
        """Return the path behind a live handle."""
        with self._lock:
            try:
                return self._paths[handle]
            except KeyError:
                raise HandleError(f"Unknown or released handle: {handle}") from None

    def release(self, handle: str) -> None:
        """Release a live handle."""
        with self._lock:
            if self._paths.pop(handle, None) is None:
                raise HandleError(f"Handle already released or never issued: {handle}")
            self.released_count += 1

    def release_all(self, handles: Iterable[str]) -> int:
        """Release every handle in ``handles`` and return how many were released.

        Raises:
            HandleError: After the remaining handles were released, if any of
                them was unknown or already released.
        """
        count = 0
        failed: list[str] = []
        for handle in handles:
            try:
                self.release(handle)
            except HandleError:
                failed.append(handle)
                continue
            count += 1
        if count:
            LOGGER.debug("Released %d local image handle(s).", count)
        if failed:
            raise HandleError(
                f"{len(failed)} handle(s) already released or never issued: "
                + ", ".join(failed)
            )
        return count

    def is_live(self, handle: str) -> bool:
        with self._lock:
            return handle in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


__all__ = ["HandleRegistry", "HandleError"]
