"""Local folder enumeration."""

from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from .handles import HandleRegistry
from .models import LOCAL_SOURCE, ImageEntry

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic")


def is_image_name(name: str) -> bool:
    """Return whether ``name`` carries an allow-listed image extension."""
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in IMAGE_EXTENSIONS)


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


class LocalFolderScanner:
    """Discover images within a connected folder and issue handles for them."""

    def __init__(
        self,
        registry: HandleRegistry,
        *,
        source: str = LOCAL_SOURCE,
        include_hidden: bool = False,
        follow_symlinks: bool = False,
    ) -> None:
        self.registry = registry
        self.source = source
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks

    def scan(self, root: Path, *, label: str | None = None) -> Iterator[ImageEntry]:
        """Yield image entries under ``root``.

        Paths are prefixed with ``label`` (the folder name by default) so
        entries from several connected folders stay distinct.
        """
        root = root.expanduser().resolve()
        if not root.is_dir():
            return
        prefix = label or root.name or "folder"

        for path in self._iter_paths(root):
            if not is_image_name(path.name):
                continue
            if not path.is_file():
                continue
            if path.is_symlink() and not self.follow_symlinks:
                continue
            relative = path.relative_to(root)
            if not self.include_hidden and _is_hidden(relative):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue

            content_type, _ = mimetypes.guess_type(path.name)
            entry_path = "/".join((prefix, *relative.parts))
            yield ImageEntry.create(
                self.source,
                entry_path,
                self.registry.issue(path),
                size_bytes=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                content_type=content_type,
            )

    def scan_many(self, roots: Iterable[Path]) -> Iterator[ImageEntry]:
        """Scan several connected folders, disambiguating duplicate folder names."""
        seen: dict[str, int] = {}
        for index, root in enumerate(roots):
            name = root.expanduser().resolve().name or f"folder-{index + 1}"
            seen[name] = seen.get(name, 0) + 1
            label = name if seen[name] == 1 else f"{name}-{seen[name]}"
            yield from self.scan(root, label=label)

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        yield from sorted(root.rglob("*"))


__all__ = ["IMAGE_EXTENSIONS", "LocalFolderScanner", "is_image_name"]
