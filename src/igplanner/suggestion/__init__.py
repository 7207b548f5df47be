"""Caption and hashtag suggestion package."""

from .backend import CompletionBackend, OpenAIResponsesBackend
from .errors import (
    SuggestionConfigurationError,
    SuggestionError,
    SuggestionTimeoutError,
    SuggestionTransportError,
    SuggestionValidationError,
    UpstreamError,
)
from .models import SUGGESTION_MODES, FailureKind, SuggestionResult
from .parsing import classify_failure, extract_output_text, parse_fields
from .prompts import build_prompt
from .service import SuggestionService

__all__ = [
    "SUGGESTION_MODES",
    "CompletionBackend",
    "FailureKind",
    "OpenAIResponsesBackend",
    "SuggestionConfigurationError",
    "SuggestionError",
    "SuggestionResult",
    "SuggestionService",
    "SuggestionTimeoutError",
    "SuggestionTransportError",
    "SuggestionValidationError",
    "UpstreamError",
    "build_prompt",
    "classify_failure",
    "extract_output_text",
    "parse_fields",
]
