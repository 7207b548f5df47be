"""Post plan models and queue ordering."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from igplanner.catalog.models import ImageEntry

_HASHTAG_SPLIT_RE = re.compile(r"[\s,]+")


def normalize_hashtags(raw: str) -> str:
    """Return space-separated tokens, each prefixed with ``#``.

    >>> normalize_hashtags("foo, #bar baz")
    '#foo #bar #baz'
    """
    tokens = [token.strip() for token in _HASHTAG_SPLIT_RE.split(raw or "")]
    return " ".join(token if token.startswith("#") else f"#{token}" for token in tokens if token)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> Optional[float]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.timestamp()


class PostPlan(BaseModel):
    """A caption/hashtag/schedule decision attached to one image.

    Attributes:
        image_id: Catalog id of the image; resolved at use time and may be missing.
        caption: Caption text.
        hashtags: Normalized hashtag string.
        scheduled_at: Optional ISO timestamp of the planned publication.
        updated_at: ISO timestamp of the last save.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_id: str = Field(alias="imageId")
    caption: str = ""
    hashtags: str = ""
    scheduled_at: Optional[str] = Field(default=None, alias="scheduledAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_draft(
        cls,
        image_id: str,
        *,
        caption: str = "",
        hashtags: str = "",
        scheduled_at: Optional[str] = None,
    ) -> "PostPlan":
        """Build a plan from user input, trimming and normalizing the fields."""
        return cls(
            image_id=image_id,
            caption=(caption or "").strip(),
            hashtags=normalize_hashtags(hashtags),
            scheduled_at=(scheduled_at or "").strip() or None,
            updated_at=utc_now_iso(),
        )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def sort_key(self) -> Tuple[int, float, str]:
        """Scheduled plans first by time, unparseable schedules next, unscheduled last."""
        if not self.scheduled_at:
            return (2, 0.0, "")
        timestamp = _parse_timestamp(self.scheduled_at)
        if timestamp is None:
            return (1, 0.0, self.scheduled_at)
        return (0, timestamp, "")


def sort_plans(plans: Iterable[PostPlan]) -> List[PostPlan]:
    """Return plans ordered by schedule; the sort is stable."""
    return sorted(plans, key=PostPlan.sort_key)


class PlanQueue:
    """In-memory plan collection holding at most one plan per image."""

    def __init__(self, plans: Iterable[PostPlan] = ()) -> None:
        self._plans: List[PostPlan] = sort_plans(plans)

    @property
    def plans(self) -> List[PostPlan]:
        return list(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    def get(self, image_id: str) -> Optional[PostPlan]:
        return next((plan for plan in self._plans if plan.image_id == image_id), None)

    def upsert(self, plan: PostPlan) -> bool:
        """Insert or replace the plan for ``plan.image_id``.

        Returns:
            bool: ``True`` when an existing plan was replaced.
        """
        for index, existing in enumerate(self._plans):
            if existing.image_id == plan.image_id:
                self._plans[index] = plan
                replaced = True
                break
        else:
            self._plans.append(plan)
            replaced = False
        self._plans = sort_plans(self._plans)
        return replaced

    def delete(self, image_id: str) -> bool:
        remaining = [plan for plan in self._plans if plan.image_id != image_id]
        removed = len(remaining) != len(self._plans)
        self._plans = remaining
        return removed

    def replace(self, plans: Iterable[PostPlan]) -> None:
        self._plans = sort_plans(plans)


def plan_payload(plan: PostPlan, entry: Optional[ImageEntry]) -> dict[str, Any]:
    """Return a portable plan document with image metadata denormalized."""
    return {
        "imageId": plan.image_id,
        "source": entry.source if entry else None,
        "imageName": entry.name if entry else None,
        "imagePath": entry.path if entry else None,
        "caption": plan.caption or "",
        "hashtags": plan.hashtags or "",
        "scheduledAt": plan.scheduled_at or None,
        "updatedAt": plan.updated_at or None,
    }


def export_document(
    plans: Iterable[PostPlan], catalog: Sequence[ImageEntry] = ()
) -> dict[str, Any]:
    """Return ``{"plans": [...]}`` resolved against the current catalog."""
    by_id = {entry.id: entry for entry in catalog}
    return {"plans": [plan_payload(plan, by_id.get(plan.image_id)) for plan in plans]}


__all__ = [
    "PlanQueue",
    "PostPlan",
    "export_document",
    "normalize_hashtags",
    "plan_payload",
    "sort_plans",
    "utc_now_iso",
]
