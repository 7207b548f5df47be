"""Input validation and output extraction for suggestions."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional, Tuple

from pydantic import ValidationError

from .errors import SuggestionValidationError
from .models import (
    SUGGESTION_MODES,
    BlockOutput,
    FailureKind,
    FlattenedOutput,
    ResponseOutput,
    UpstreamFailure,
)

_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+(?:;[^,]*)?,.+", re.DOTALL)
_CAPTION_RE = re.compile(r"CAPTION:[ \t]*([^\r\n]*)", re.IGNORECASE)
_HASHTAGS_RE = re.compile(r"HASHTAGS:[ \t]*([^\r\n]*)", re.IGNORECASE)


def validate_mode(mode: Any) -> str:
    """Return ``mode`` when it is one of the supported modes."""
    if not isinstance(mode, str) or mode not in SUGGESTION_MODES:
        raise SuggestionValidationError("Invalid mode")
    return mode


def validate_image_data_url(value: Any) -> str:
    """Return ``value`` when it is an inline ``data:image/...`` URL."""
    if not isinstance(value, str) or not _DATA_URL_RE.match(value):
        raise SuggestionValidationError("Invalid or missing imageDataUrl")
    return value


def parse_output(payload: Mapping[str, Any]) -> ResponseOutput:
    """Map a backend response onto its output variant.

    A non-empty ``output_text`` string wins; otherwise every text-bearing part
    of every ``output[].content[]`` item is collected in order.
    """
    flattened = payload.get("output_text") if isinstance(payload, Mapping) else None
    if isinstance(flattened, str) and flattened.strip():
        return FlattenedOutput(text=flattened)

    blocks: list[str] = []
    items = payload.get("output") if isinstance(payload, Mapping) else None
    for item in items or []:
        if not isinstance(item, Mapping):
            continue
        for part in item.get("content") or []:
            if isinstance(part, Mapping) and isinstance(part.get("text"), str):
                blocks.append(part["text"])
    return BlockOutput(blocks=blocks)


def extract_output_text(payload: Mapping[str, Any]) -> str:
    """Return the trimmed output text of a backend response."""
    return parse_output(payload).extract()


def parse_fields(text: str) -> Tuple[str, str]:
    """Return the ``CAPTION:`` and ``HASHTAGS:`` values found in ``text``.

    Matching is case-insensitive and takes the remainder of the first matching
    line. A missing label yields an empty string.
    """
    caption_match = _CAPTION_RE.search(text or "")
    tags_match = _HASHTAGS_RE.search(text or "")
    caption = caption_match.group(1).strip() if caption_match else ""
    hashtags = tags_match.group(1).strip() if tags_match else ""
    return caption, hashtags


def parse_failure(body: str) -> Optional[UpstreamFailure]:
    """Parse an error body into an :class:`UpstreamFailure` when it is JSON."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    document = error if isinstance(error, dict) else data
    try:
        return UpstreamFailure.model_validate(
            {key: document.get(key) for key in ("code", "type", "message")}
        )
    except ValidationError:
        return None


def classify_failure(body: str) -> FailureKind:
    """Return :attr:`FailureKind.MODEL_NOT_FOUND` only for that exact error code."""
    failure = parse_failure(body)
    if failure is not None and failure.code == FailureKind.MODEL_NOT_FOUND.value:
        return FailureKind.MODEL_NOT_FOUND
    return FailureKind.OTHER


__all__ = [
    "classify_failure",
    "extract_output_text",
    "parse_failure",
    "parse_fields",
    "parse_output",
    "validate_image_data_url",
    "validate_mode",
]
