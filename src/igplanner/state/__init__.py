"""Plan queue persistence."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List

from pydantic import ValidationError

from .errors import ImportFormatError, StateError
from .models import (
    PlanQueue,
    PostPlan,
    export_document,
    normalize_hashtags,
    plan_payload,
    sort_plans,
)

LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "ig-planner.v1"
DEFAULT_STATE_DIR = Path("~/.igplanner")


def _validate_plans(items: list[Any]) -> List[PostPlan]:
    return [PostPlan.model_validate(item) for item in items]


class PlanRepository:
    """Persist the plan queue under a fixed namespaced key."""

    def __init__(self, state_dir: Path | None = None) -> None:
        """Initialize the repository.

        Args:
            state_dir: Directory holding the state file; ``~/.igplanner`` by default.
        """
        self._state_dir = (state_dir or DEFAULT_STATE_DIR).expanduser()

    @property
    def path(self) -> Path:
        """Return the location of the persisted record."""
        return self._state_dir / f"{STORAGE_KEY}.json"

    def load(self) -> List[PostPlan]:
        """Load persisted plans.

        Missing or malformed data never raises; it is logged and an empty
        collection is returned instead.

        Returns:
            List[PostPlan]: Persisted plans, possibly empty.
        """
        path = self.path
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Failed to parse planner state at %s: %s", path, exc)
            return []

        items = data.get("plans") if isinstance(data, dict) else None
        if not isinstance(items, list):
            LOGGER.warning("Planner state at %s has no plans array; starting empty.", path)
            return []

        try:
            return _validate_plans(items)
        except ValidationError as exc:
            LOGGER.warning("Planner state at %s holds invalid plans: %s", path, exc)
            return []

    def save(self, plans: Iterable[PostPlan]) -> None:
        """Persist ``plans`` as ``{"plans": [...]}``.

        Raises:
            StateError: If the record cannot be written.
        """
        payload = {"plans": [plan.to_document() for plan in plans]}
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StateError(f"Could not write planner state to {self.path}: {exc}") from exc

    def import_document(self, data: Any) -> List[PostPlan]:
        """Replace the persisted collection with the plans of ``data``.

        Nothing is written unless the whole document validates.

        Args:
            data: Decoded JSON document expected to hold a ``plans`` array.

        Returns:
            List[PostPlan]: Imported plans in queue order.

        Raises:
            ImportFormatError: If ``plans`` is missing or any plan is invalid.
            StateError: If the record cannot be written.
        """
        items = data.get("plans") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ImportFormatError("Invalid format: expected a 'plans' array.")
        try:
            plans = sort_plans(_validate_plans(items))
        except ValidationError as exc:
            raise ImportFormatError(f"Invalid plan entry: {exc}") from exc

        self.save(plans)
        LOGGER.info("Imported %d plan(s) into %s", len(plans), self.path)
        return plans

    def import_text(self, text: str) -> List[PostPlan]:
        """Parse ``text`` as JSON and import it."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"Invalid JSON file: {exc}") from exc
        return self.import_document(data)


__all__ = [
    "DEFAULT_STATE_DIR",
    "STORAGE_KEY",
    "ImportFormatError",
    "PlanQueue",
    "PlanRepository",
    "PostPlan",
    "StateError",
    "export_document",
    "normalize_hashtags",
    "plan_payload",
    "sort_plans",
]
