"""Plan queue and repository tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from igplanner.catalog import ImageEntry
from igplanner.state import (
    STORAGE_KEY,
    ImportFormatError,
    PlanQueue,
    PlanRepository,
    PostPlan,
    export_document,
    normalize_hashtags,
    sort_plans,
)


def _plan(image_id: str, scheduled_at: str | None = None, **fields: str) -> PostPlan:
    return PostPlan.from_draft(image_id, scheduled_at=scheduled_at, **fields)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("travel, #sea  sunset", "#travel #sea #sunset"),
        ("#one\n#two", "#one #two"),
        ("  ,, ", ""),
        ("", ""),
    ],
)
def test_normalize_hashtags(raw: str, expected: str) -> None:
    assert normalize_hashtags(raw) == expected


def test_from_draft_trims_and_stamps() -> None:
    plan = PostPlan.from_draft("local:a.jpg", caption="  hi  ", hashtags="x y", scheduled_at=" ")

    assert plan.caption == "hi"
    assert plan.hashtags == "#x #y"
    assert plan.scheduled_at is None
    assert plan.updated_at and plan.updated_at.endswith("Z")


def test_sort_plans_orders_scheduled_then_unscheduled() -> None:
    plans = [
        _plan("none-1"),
        _plan("late", "2025-06-02T09:00"),
        _plan("garbled", "next tuesday"),
        _plan("early", "2025-06-01T09:00"),
        _plan("none-2"),
    ]

    ordered = [plan.image_id for plan in sort_plans(plans)]

    assert ordered == ["early", "late", "garbled", "none-1", "none-2"]


def test_sort_plans_compares_timezones() -> None:
    plans = [_plan("b", "2025-06-01T10:00:00+02:00"), _plan("a", "2025-06-01T07:30:00Z")]

    assert [plan.image_id for plan in sort_plans(plans)] == ["a", "b"]


def test_queue_upsert_keeps_one_plan_per_image() -> None:
    queue = PlanQueue()

    assert queue.upsert(_plan("img", caption="first")) is False
    assert queue.upsert(_plan("img", caption="second")) is True

    assert len(queue) == 1
    assert queue.get("img").caption == "second"
    assert queue.delete("img") is True
    assert queue.delete("img") is False


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    repo = PlanRepository(tmp_path)
    plans = [_plan("local:a.jpg", "2025-06-01T09:00", caption="A", hashtags="x")]

    repo.save(plans)
    loaded = repo.load()

    assert repo.path == tmp_path / f"{STORAGE_KEY}.json"
    document = json.loads(repo.path.read_text(encoding="utf-8"))
    assert document["plans"][0]["imageId"] == "local:a.jpg"
    assert document["plans"][0]["scheduledAt"] == "2025-06-01T09:00"
    assert loaded == plans


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"plans": "nope"}), json.dumps([1, 2]), json.dumps({"plans": [{}]})],
)
def test_load_recovers_from_malformed_state(tmp_path: Path, content: str) -> None:
    repo = PlanRepository(tmp_path)
    repo.path.write_text(content, encoding="utf-8")

    assert repo.load() == []


def test_load_missing_state_is_empty(tmp_path: Path) -> None:
    assert PlanRepository(tmp_path / "absent").load() == []


def test_import_replaces_everything(tmp_path: Path) -> None:
    repo = PlanRepository(tmp_path)
    repo.save([_plan("old")])

    imported = repo.import_document(
        {
            "plans": [
                {"imageId": "b", "caption": "B"},
                {"imageId": "a", "scheduledAt": "2025-01-01T00:00:00Z"},
            ]
        }
    )

    assert [plan.image_id for plan in imported] == ["a", "b"]
    assert [plan.image_id for plan in repo.load()] == ["a", "b"]


@pytest.mark.parametrize(
    "document",
    [{"items": []}, {"plans": {"imageId": "x"}}, {"plans": [{"caption": "no id"}]}, ["plans"]],
)
def test_import_is_all_or_nothing(tmp_path: Path, document: object) -> None:
    repo = PlanRepository(tmp_path)
    repo.save([_plan("kept")])

    with pytest.raises(ImportFormatError):
        repo.import_document(document)

    assert [plan.image_id for plan in repo.load()] == ["kept"]


def test_import_text_rejects_invalid_json(tmp_path: Path) -> None:
    with pytest.raises(ImportFormatError):
        PlanRepository(tmp_path).import_text("{oops")


def test_export_denormalizes_known_images() -> None:
    entry = ImageEntry.create("local", "Trip/a.jpg", "blob:1")
    plans = [_plan(entry.id, caption="A"), _plan("nextcloud:gone.jpg")]

    document = export_document(plans, [entry])

    known, missing = document["plans"]
    assert known["source"] == "local"
    assert known["imageName"] == "a.jpg"
    assert known["imagePath"] == "Trip/a.jpg"
    assert known["caption"] == "A"
    assert missing["imageId"] == "nextcloud:gone.jpg"
    assert missing["source"] is None and missing["imageName"] is None
    assert missing["scheduledAt"] is None
