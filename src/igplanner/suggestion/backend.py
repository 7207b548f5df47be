"""Completion backends for image suggestions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from igplanner.config.models import LLMSettings

from .errors import SuggestionTimeoutError, SuggestionTransportError, UpstreamError

LOGGER = logging.getLogger(__name__)


class CompletionBackend(ABC):
    """Abstract vision-capable text completion endpoint."""

    @abstractmethod
    def complete(self, *, model: str, prompt: str, image_data_url: str) -> dict[str, Any]:
        """Send the prompt and image to ``model`` and return the decoded response.

        Raises:
            UpstreamError: If the backend answers with a non-success status.
            SuggestionTransportError: If the backend cannot be reached in time.
        """


class OpenAIResponsesBackend(CompletionBackend):
    """Backend speaking the OpenAI ``/v1/responses`` protocol."""

    def __init__(
        self,
        settings: LLMSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self.endpoint = f"{settings.api_base_url.rstrip('/')}/v1/responses"

    def complete(self, *, model: str, prompt: str, image_data_url: str) -> dict[str, Any]:
        payload = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                }
            ],
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
        }

        LOGGER.debug("Requesting suggestion from %s using %s", self.endpoint, model)
        try:
            response = self._session.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self._settings.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise SuggestionTimeoutError(
                f"Suggestion request timed out after {self._settings.timeout_seconds}s."
            ) from exc
        except requests.RequestException as exc:
            raise SuggestionTransportError(f"Suggestion request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(502, f"Invalid JSON from completion backend: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(502, "Completion backend returned a non-object payload.")
        return data


__all__ = ["CompletionBackend", "OpenAIResponsesBackend"]
