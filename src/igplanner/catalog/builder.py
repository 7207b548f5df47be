"""Catalog merge, ordering, and selection rules."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from .models import ImageEntry


def build_catalog(
    local_entries: Iterable[ImageEntry],
    remote_entries_by_origin: Mapping[str, Iterable[ImageEntry]] | None = None,
) -> list[ImageEntry]:
    """Merge local and remote entries into one catalog ordered by path.

    Entries from different origins are never deduplicated against each other;
    ids stay unique because each id embeds its origin tag.

    Args:
        local_entries: Entries enumerated from connected local folders.
        remote_entries_by_origin: Remote entries keyed by origin tag.

    Returns:
        list[ImageEntry]: Entries sorted by ``path`` (stable for equal paths).
    """
    merged = list(local_entries)
    for entries in (remote_entries_by_origin or {}).values():
        merged.extend(entries)
    return sorted(merged, key=lambda entry: entry.path)


def repair_selection(
    selected_id: Optional[str], catalog: Sequence[ImageEntry]
) -> Optional[str]:
    """Return the selection to keep after ``catalog`` replaced the previous one.

    Args:
        selected_id: Previously selected entry id.
        catalog: Newly built, sorted catalog.

    Returns:
        Optional[str]: ``selected_id`` when still present, otherwise the first
        entry's id, or ``None`` for an empty catalog.
    """
    if selected_id is not None and any(entry.id == selected_id for entry in catalog):
        return selected_id
    return catalog[0].id if catalog else None


def find_entry(catalog: Sequence[ImageEntry], image_id: Optional[str]) -> Optional[ImageEntry]:
    if image_id is None:
        return None
    return next((entry for entry in catalog if entry.id == image_id), None)


__all__ = ["build_catalog", "repair_selection", "find_entry"]
