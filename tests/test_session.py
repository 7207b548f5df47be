"""Planner session tests."""

from __future__ import annotations

import base64
import random
import threading
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from igplanner.catalog import HandleRegistry, LocalFolderScanner
from igplanner.session import PlanDraft, PlannerSession, SessionError, apply_suggestion
from igplanner.state import PlanRepository
from igplanner.suggestion import SuggestionResult
from igplanner.webdav import RemoteImage


def _write_image(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (4, 4), color="blue").save(path)
    return path


def _session(tmp_path: Path, **kwargs: Any) -> PlannerSession:
    return PlannerSession(PlanRepository(tmp_path / "state"), **kwargs)


class FakeNextcloud:
    def __init__(self, images: list[RemoteImage]) -> None:
        self.images = images

    def sample_images(self) -> list[RemoteImage]:
        return list(self.images)


class FakeSuggestions:
    def __init__(self, result: SuggestionResult) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    def suggest(self, mode: str, image_data_url: str) -> SuggestionResult:
        self.calls.append((mode, image_data_url))
        return self.result


def test_refresh_releases_every_previous_handle(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "a.png")
    _write_image(folder / "b.png")
    registry = HandleRegistry()
    session = _session(tmp_path, registry=registry)

    session.connect_folders([folder])
    first = session.catalog
    session.refresh()
    session.refresh()

    assert len(registry) == 2
    assert registry.issued_count == 6
    assert registry.released_count == 4
    assert not any(registry.is_live(entry.locator) for entry in first)
    assert session.generation == 3

    session.clear_folders()

    assert len(registry) == 0
    assert session.catalog == []
    assert session.selected_id is None


def test_selection_survives_refresh_and_repairs(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "a.png")
    target = _write_image(folder / "b.png")
    session = _session(tmp_path)

    session.connect_folders([folder])
    assert session.selected_id == "local:Pics/a.png"

    session.select("local:Pics/b.png")
    session.refresh()
    assert session.selected_id == "local:Pics/b.png"

    target.unlink()
    session.refresh()
    assert session.selected_id == "local:Pics/a.png"

    with pytest.raises(SessionError):
        session.select("local:Pics/b.png")


def test_failed_rebuild_releases_partial_handles(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "a.png")
    registry = HandleRegistry()

    class ExplodingScanner(LocalFolderScanner):
        def scan_many(self, roots: Any) -> Any:
            yield from super().scan_many(roots)
            raise OSError("disk vanished")

    session = _session(tmp_path, registry=registry, scanner=ExplodingScanner(registry))

    with pytest.raises(OSError):
        session.connect_folders([folder])

    assert len(registry) == 0
    assert session.catalog == []
    assert session.selected_id is None


def test_remote_samples_merge_into_catalog(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "m.png")
    remote = FakeNextcloud(
        [
            RemoteImage(path="Trip/a.jpg", name="a.jpg"),
            RemoteImage(path="Trip/raw.dng", name="raw.dng"),
        ]
    )
    session = _session(tmp_path, nextcloud=remote)
    session.connect_folders([folder])

    entries = session.load_remote_samples()

    assert [entry.id for entry in entries] == ["nextcloud:Trip/a.jpg"]
    assert entries[0].locator == "/api/nextcloud/file?path=Trip%2Fa.jpg"
    assert [entry.id for entry in session.catalog] == ["local:Pics/m.png", "nextcloud:Trip/a.jpg"]


def test_remote_samples_require_configuration(tmp_path: Path) -> None:
    with pytest.raises(SessionError):
        _session(tmp_path).load_remote_samples()


def test_pick_random_prefers_another_image(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "a.png")
    _write_image(folder / "b.png")
    session = _session(tmp_path)
    session.connect_folders([folder])

    picked = session.pick_random_image(random.Random(7))

    assert picked is not None
    assert picked.id == "local:Pics/b.png"
    assert session.selected_id == picked.id
    assert _session(tmp_path).pick_random_image() is None


@pytest.mark.parametrize(
    ("mode", "expected_caption", "expected_tags"),
    [
        ("caption", "New caption", "#old"),
        ("hashtags", "Old caption", "#new #tags"),
        ("both", "New caption", "#new #tags"),
    ],
)
def test_apply_suggestion_respects_mode(
    mode: str, expected_caption: str, expected_tags: str
) -> None:
    draft = PlanDraft(caption="Old caption", hashtags="#old")
    result = SuggestionResult(caption="New caption", hashtags="new, #tags", raw="")

    updated = apply_suggestion(draft, mode, result)

    assert (updated.caption, updated.hashtags) == (expected_caption, expected_tags)
    assert draft.caption == "Old caption"


def test_apply_suggestion_keeps_fields_when_suggestion_empty() -> None:
    draft = PlanDraft(caption="Mine", hashtags="#mine")

    updated = apply_suggestion(draft, "both", SuggestionResult(raw="unlabeled"))

    assert (updated.caption, updated.hashtags) == ("Mine", "#mine")


def test_suggest_sends_data_url_and_saves_plan(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    image = _write_image(folder / "a.png")
    session = _session(tmp_path)
    session.connect_folders([folder])
    service = FakeSuggestions(SuggestionResult(caption="Blue", hashtags="blue", raw=""))

    result, draft = session.suggest(service, "both")
    plan = session.save_plan(draft)

    mode, data_url = service.calls[0]
    assert mode == "both"
    assert data_url.startswith("data:image/png;base64,")
    assert base64.b64decode(data_url.split(",", 1)[1]) == image.read_bytes()
    assert result.caption == "Blue"
    assert plan.image_id == "local:Pics/a.png"
    assert plan.hashtags == "#blue"

    reloaded = _session(tmp_path)
    assert [saved.image_id for saved in reloaded.plans] == ["local:Pics/a.png"]
    assert reloaded.draft_for("local:Pics/a.png").caption == "Blue"


def test_plans_survive_catalog_changes(tmp_path: Path) -> None:
    session = _session(tmp_path)
    session.save_plan(PlanDraft(caption="later"), image_id="local:gone.png")

    session.clear_folders()
    exported = session.export_plans()

    assert exported["plans"][0]["imageId"] == "local:gone.png"
    assert exported["plans"][0]["imageName"] is None
    assert session.delete_plan("local:gone.png") is True
    assert _session(tmp_path).plans == []


def test_save_requires_selection(tmp_path: Path) -> None:
    with pytest.raises(SessionError):
        _session(tmp_path).save_plan(PlanDraft(caption="x"))


def test_import_plans_replaces_queue(tmp_path: Path) -> None:
    session = _session(tmp_path)
    session.save_plan(PlanDraft(caption="old"), image_id="old")

    session.import_plans({"plans": [{"imageId": "new", "caption": "fresh"}]})

    assert [plan.image_id for plan in session.plans] == ["new"]
    assert [plan.image_id for plan in _session(tmp_path).plans] == ["new"]


def test_session_uses_the_registry_it_is_given(tmp_path: Path) -> None:
    registry = HandleRegistry()
    scanner = LocalFolderScanner(registry)

    assert _session(tmp_path, registry=registry).registry is registry
    assert _session(tmp_path, registry=registry, scanner=scanner).scanner is scanner
    assert _session(tmp_path, scanner=scanner).registry is registry
    with pytest.raises(ValueError):
        _session(tmp_path, registry=HandleRegistry(), scanner=scanner)


def test_readers_keep_previous_catalog_during_rebuild(tmp_path: Path) -> None:
    folder = tmp_path / "Pics"
    _write_image(folder / "a.png")
    registry = HandleRegistry()
    scanning = threading.Event()
    resume = threading.Event()

    class BlockingScanner(LocalFolderScanner):
        blocking = False

        def scan_many(self, roots: Any) -> Any:
            if self.blocking:
                scanning.set()
                resume.wait(timeout=5)
            yield from super().scan_many(roots)

    scanner = BlockingScanner(registry)
    session = _session(tmp_path, registry=registry, scanner=scanner)
    session.connect_folders([folder])
    before = session.catalog
    scanner.blocking = True

    worker = threading.Thread(target=session.refresh)
    worker.start()
    try:
        assert scanning.wait(timeout=5)
        assert session.catalog == before
        assert session.select("local:Pics/a.png").id == "local:Pics/a.png"
        assert all(registry.is_live(entry.locator) for entry in before)
    finally:
        resume.set()
        worker.join(timeout=5)

    assert [entry.id for entry in session.catalog] == ["local:Pics/a.png"]
    assert session.selected_id == "local:Pics/a.png"
    assert session.generation == 2
    assert not any(registry.is_live(entry.locator) for entry in before)
    assert len(registry) == 1
