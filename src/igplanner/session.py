"""Session state: connected folders, the current catalog, selection, and plans."""

from __future__ import annotations

import base64
import logging
import mimetypes
import random
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, List, Optional

from igplanner.catalog import (
    NEXTCLOUD_SOURCE,
    HandleRegistry,
    ImageEntry,
    LocalFolderScanner,
    build_catalog,
    find_entry,
    is_image_name,
    repair_selection,
)
from igplanner.state import (
    PlanQueue,
    PlanRepository,
    PostPlan,
    export_document,
    normalize_hashtags,
)
from igplanner.suggestion import SuggestionResult, SuggestionService
from igplanner.webdav import NextcloudClient, proxy_url

LOGGER = logging.getLogger(__name__)


class SessionError(Exception):
    """Raised when a session command cannot be carried out."""


@dataclass(slots=True)
class PlanDraft:
    """Editable form values for the selected image."""

    caption: str = ""
    hashtags: str = ""
    scheduled_at: Optional[str] = None


def apply_suggestion(draft: PlanDraft, mode: str, result: SuggestionResult) -> PlanDraft:
    """Return ``draft`` with the suggested fields that ``mode`` asked for.

    Empty suggested fields never overwrite what the user already typed.
    """
    updated = replace(draft)
    if mode in ("caption", "both") and result.caption:
        updated.caption = result.caption.strip()
    if mode in ("hashtags", "both") and result.hashtags:
        updated.hashtags = normalize_hashtags(result.hashtags)
    return updated


class PlannerSession:
    """Own the single local session's mutable state.

    Catalog rebuilds run under one lock; every rebuild starts a new generation
    and releases the local handles of the generation it supersedes. Readers
    keep seeing the previous catalog until the new one is swapped in.

    Raises:
        ValueError: If ``scanner`` issues handles into a registry other than
            ``registry``.
    """

    def __init__(
        self,
        repository: PlanRepository,
        *,
        registry: Optional[HandleRegistry] = None,
        scanner: Optional[LocalFolderScanner] = None,
        nextcloud: Optional[NextcloudClient] = None,
    ) -> None:
        self.repository = repository
        if registry is None:
            registry = scanner.registry if scanner is not None else HandleRegistry()
        if scanner is None:
            scanner = LocalFolderScanner(registry)
        elif scanner.registry is not registry:
            raise ValueError("The scanner must issue handles into the session registry.")
        self.registry = registry
        self.scanner = scanner
        self.nextcloud = nextcloud
        self.queue = PlanQueue(repository.load())
        self._folders: List[Path] = []
        self._remote: dict[str, List[ImageEntry]] = {}
        self._catalog: List[ImageEntry] = []
        self._selected_id: Optional[str] = None
        self._generation = 0
        # _lock serializes rebuilds; _state_lock guards the catalog swap and selection.
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Catalog                                                            #
    # ------------------------------------------------------------------ #

    @property
    def catalog(self) -> List[ImageEntry]:
        with self._state_lock:
            return list(self._catalog)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def folders(self) -> List[Path]:
        return list(self._folders)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected(self) -> Optional[ImageEntry]:
        with self._state_lock:
            return find_entry(self._catalog, self._selected_id)

    def connect_folders(self, folders: Iterable[Path]) -> List[ImageEntry]:
        """Add local folders and rebuild the catalog."""
        with self._lock:
            self._folders.extend(Path(folder) for folder in folders)
            return self._rebuild()

    def refresh(self) -> List[ImageEntry]:
        """Re-enumerate every origin and replace the catalog."""
        with self._lock:
            return self._rebuild()

    def load_remote_samples(self) -> List[ImageEntry]:
        """Crawl the remote share and merge its images into the catalog.

        Raises:
            SessionError: If no remote share is configured.
            DavError: If the crawl fails; the catalog is left untouched.
        """
        if self.nextcloud is None:
            raise SessionError("Nextcloud is not configured.")
        images = self.nextcloud.sample_images()
        entries = [
            ImageEntry.create(NEXTCLOUD_SOURCE, image.path, proxy_url(image.path))
            for image in images
            if is_image_name(image.name)
        ]
        with self._lock:
            self._remote[NEXTCLOUD_SOURCE] = entries
            self._rebuild()
        LOGGER.info("Loaded %d Nextcloud image(s).", len(entries))
        return entries

    def clear_folders(self) -> None:
        """Forget every origin, release all handles, and empty the catalog."""
        with self._lock:
            self._folders = []
            self._remote = {}
            self._release(self._swap([]))

    def select(self, image_id: str) -> ImageEntry:
        with self._state_lock:
            entry = find_entry(self._catalog, image_id)
            if entry is None:
                raise SessionError(f"Image not in catalog: {image_id}")
            self._selected_id = entry.id
            return entry

    def pick_random_image(self, rng: Optional[random.Random] = None) -> Optional[ImageEntry]:
        """Select a random entry, preferring one other than the current selection."""
        chooser = rng or random
        with self._state_lock:
            if not self._catalog:
                return None
            candidates = [entry for entry in self._catalog if entry.id != self._selected_id]
            entry = chooser.choice(candidates or self._catalog)
            self._selected_id = entry.id
            return entry

    def _rebuild(self) -> List[ImageEntry]:
        local: List[ImageEntry] = []
        catalog: List[ImageEntry] = []
        try:
            for entry in self.scanner.scan_many(self._folders):
                local.append(entry)
            catalog = build_catalog(local, self._remote)
        except Exception:
            self._release(local)
            raise
        finally:
            self._release(self._swap(catalog))
        LOGGER.debug(
            "Catalog generation %d holds %d image(s).", self._generation, len(catalog)
        )
        return list(catalog)

    def _swap(self, catalog: List[ImageEntry]) -> List[ImageEntry]:
        """Install ``catalog`` as a new generation and return the one it replaces."""
        with self._state_lock:
            previous, self._catalog = self._catalog, catalog
            self._generation += 1
            self._selected_id = repair_selection(self._selected_id, catalog)
        return previous

    def _release(self, entries: Iterable[ImageEntry]) -> None:
        self.registry.release_all(entry.locator for entry in entries if entry.has_handle)

    # ------------------------------------------------------------------ #
    # Image bytes                                                        #
    # ------------------------------------------------------------------ #

    def image_bytes(self, entry: ImageEntry) -> tuple[bytes, str]:
        """Return the raw bytes and content type behind ``entry``."""
        guessed = entry.content_type or mimetypes.guess_type(entry.name)[0]
        if entry.has_handle:
            data = self.registry.resolve(entry.locator).read_bytes()
            return data, guessed or _fallback_image_type(entry.name)
        if self.nextcloud is None:
            raise SessionError("This image cannot be fetched right now.")
        remote = self.nextcloud.open_file(entry.path)
        data = remote.read()
        content_type = remote.content_type.split(";", 1)[0].strip().lower()
        if not content_type.startswith("image/"):
            content_type = guessed or _fallback_image_type(entry.name)
        return data, content_type

    def image_data_url(self, entry: ImageEntry) -> str:
        """Return ``entry`` encoded as a ``data:`` URL for the suggestion service."""
        data, content_type = self.image_bytes(entry)
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type};base64,{encoded}"

    def suggest(
        self,
        service: SuggestionService,
        mode: str,
        *,
        image_id: Optional[str] = None,
        draft: Optional[PlanDraft] = None,
    ) -> tuple[SuggestionResult, PlanDraft]:
        """Request a suggestion for an image and apply it to a draft."""
        entry = find_entry(self.catalog, image_id or self._selected_id)
        if entry is None:
            raise SessionError("Select an image first.")
        result = service.suggest(mode, self.image_data_url(entry))
        base = draft if draft is not None else self.draft_for(entry.id)
        return result, apply_suggestion(base, mode, result)

    # ------------------------------------------------------------------ #
    # Plans                                                              #
    # ------------------------------------------------------------------ #

    @property
    def plans(self) -> List[PostPlan]:
        return self.queue.plans

    def draft_for(self, image_id: str) -> PlanDraft:
        plan = self.queue.get(image_id)
        if plan is None:
            return PlanDraft()
        return PlanDraft(
            caption=plan.caption, hashtags=plan.hashtags, scheduled_at=plan.scheduled_at
        )

    def save_plan(self, draft: PlanDraft, *, image_id: Optional[str] = None) -> PostPlan:
        """Upsert the plan for ``image_id`` (the selection by default) and persist."""
        target = image_id or self._selected_id
        if not target:
            raise SessionError("Select an image first.")
        plan = PostPlan.from_draft(
            target,
            caption=draft.caption,
            hashtags=draft.hashtags,
            scheduled_at=draft.scheduled_at,
        )
        self.queue.upsert(plan)
        self.repository.save(self.queue.plans)
        return plan

    def delete_plan(self, image_id: str) -> bool:
        removed = self.queue.delete(image_id)
        if removed:
            self.repository.save(self.queue.plans)
        return removed

    def import_plans(self, data: object) -> List[PostPlan]:
        """Replace every plan with those of ``data``; nothing changes on failure."""
        plans = self.repository.import_document(data)
        self.queue.replace(plans)
        return self.queue.plans

    def export_plans(self) -> dict:
        return export_document(self.queue.plans, self.catalog)


def _fallback_image_type(name: str) -> str:
    suffix = name.rsplit(".", 1)[-1].lower() if "." in name else "jpeg"
    return f"image/{'jpeg' if suffix == 'jpg' else suffix}"


__all__ = ["PlanDraft", "PlannerSession", "SessionError", "apply_suggestion"]
