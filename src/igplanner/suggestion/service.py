"""Suggestion service: prompt, call, fall back, and parse."""

from __future__ import annotations

import logging
from typing import Optional

from igplanner.config.models import LLMSettings

from .backend import CompletionBackend, OpenAIResponsesBackend
from .errors import SuggestionConfigurationError, UpstreamError
from .models import FailureKind, SuggestionResult
from .parsing import (
    classify_failure,
    extract_output_text,
    parse_fields,
    validate_image_data_url,
    validate_mode,
)
from .prompts import build_prompt

LOGGER = logging.getLogger(__name__)


class SuggestionService:
    """Generate captions and hashtags for an image via a completion backend."""

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        *,
        backend: Optional[CompletionBackend] = None,
    ) -> None:
        """Initialise the service.

        Args:
            settings: Backend configuration; defaults apply when omitted.
            backend: Optional backend override, mainly for tests.
        """
        self._settings = settings or LLMSettings()
        self._backend = backend

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def suggest(self, mode: str, image_data_url: str) -> SuggestionResult:
        """Return caption and hashtag suggestions for an inline image.

        Args:
            mode: ``caption``, ``hashtags``, or ``both``.
            image_data_url: Image encoded as a ``data:image/...`` URL.

        Returns:
            SuggestionResult: Parsed fields plus the raw output text.

        Raises:
            SuggestionConfigurationError: If no API key is configured.
            SuggestionValidationError: If ``mode`` or the image payload is invalid.
            UpstreamError: If the backend (and any fallback) fails.
            SuggestionTransportError: If the backend cannot be reached in time.
        """
        if not self.configured:
            raise SuggestionConfigurationError("OPENAI_API_KEY is not set on server")
        validate_mode(mode)
        validate_image_data_url(image_data_url)

        backend = self._backend or OpenAIResponsesBackend(self._settings)
        prompt = build_prompt(mode)
        primary = self._settings.model
        fallback = self._settings.fallback_model

        try:
            payload = backend.complete(model=primary, prompt=prompt, image_data_url=image_data_url)
        except UpstreamError as exc:
            if (
                classify_failure(exc.body) is not FailureKind.MODEL_NOT_FOUND
                or not fallback
                or fallback == primary
            ):
                raise
            LOGGER.warning("Model %s not found; retrying with fallback %s.", primary, fallback)
            payload = backend.complete(model=fallback, prompt=prompt, image_data_url=image_data_url)

        text = extract_output_text(payload)
        caption, hashtags = parse_fields(text)
        return SuggestionResult(caption=caption, hashtags=hashtags, raw=text)


__all__ = ["SuggestionService"]
