"""Suggestion request and response models."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

SuggestionMode = Literal["caption", "hashtags", "both"]
SUGGESTION_MODES: tuple[str, ...] = ("caption", "hashtags", "both")


class SuggestionResult(BaseModel):
    """Structured fields extracted from one completion.

    Attributes:
        caption: Text after ``CAPTION:``, or empty when absent.
        hashtags: Text after ``HASHTAGS:``, or empty when absent.
        raw: Full extracted output text.
    """

    caption: str = ""
    hashtags: str = ""
    raw: str = ""


class FailureKind(str, Enum):
    """Classification of a failed completion call."""

    MODEL_NOT_FOUND = "model_not_found"
    OTHER = "other"


class UpstreamFailure(BaseModel):
    """Error document returned by the completion backend."""

    code: Optional[str] = None
    type: Optional[str] = None
    message: Optional[str] = None


class FlattenedOutput(BaseModel):
    """Response carrying a single ``output_text`` field."""

    kind: Literal["flattened"] = "flattened"
    text: str

    def extract(self) -> str:
        return self.text.strip()


class BlockOutput(BaseModel):
    """Response carrying nested content blocks."""

    kind: Literal["blocks"] = "blocks"
    blocks: List[str] = Field(default_factory=list)

    def extract(self) -> str:
        return "\n".join(self.blocks).strip()


ResponseOutput = Union[FlattenedOutput, BlockOutput]


__all__ = [
    "SUGGESTION_MODES",
    "BlockOutput",
    "FailureKind",
    "FlattenedOutput",
    "ResponseOutput",
    "SuggestionMode",
    "SuggestionResult",
    "UpstreamFailure",
]
