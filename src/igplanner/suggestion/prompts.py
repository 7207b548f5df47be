"""Instructions sent to the completion backend."""

from __future__ import annotations

_COMMON = (
    "Analyze the image. Write in a polished Instagram style. Avoid cliches and keep it natural."
)


def build_prompt(mode: str) -> str:
    """Return the instruction for ``mode`` (``caption``, ``hashtags``, or ``both``)."""
    if mode == "caption":
        return f"{_COMMON} Return exactly:\nCAPTION: <one caption only>"
    if mode == "hashtags":
        return (
            f"{_COMMON} Return exactly:\n"
            "HASHTAGS: <5-12 relevant hashtags, space-separated, each starts with #>"
        )
    return (
        f"{_COMMON} Return exactly two lines:\n"
        "CAPTION: <one caption>\n"
        "HASHTAGS: <5-12 relevant hashtags, space-separated, each starts with #>"
    )


__all__ = ["build_prompt"]
