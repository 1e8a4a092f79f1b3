"""Shared types for the text-generation collaborator boundary.

The pipeline does not talk to any generative model itself. Question
generation and chat are done by an external service reached through the
``TextGenerator`` port; these types describe how that service fails.
"""

from __future__ import annotations

from enum import Enum


class GenerationErrorKind(str, Enum):
    """Classified generation failures."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CONTENT_BLOCKED = "content_blocked"
    MALFORMED_RESPONSE = "malformed_response"
    SERVER = "server"
    UNKNOWN = "unknown"


GENERATION_MESSAGES: dict[GenerationErrorKind, str] = {
    GenerationErrorKind.AUTH: "A valid API key is required. Please check your key and try again.",
    GenerationErrorKind.RATE_LIMIT: "Too many requests. Please wait a moment and try again.",
    GenerationErrorKind.CONTENT_BLOCKED: (
        "The request was blocked by the content safety filter. "
        "Try different material or rephrase the question."
    ),
    GenerationErrorKind.MALFORMED_RESPONSE: (
        "The generator returned a response that could not be used. Please try again."
    ),
    GenerationErrorKind.SERVER: "The text generation service is unavailable. Please try again later.",
    GenerationErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}

_RETRYABLE_KINDS = frozenset({GenerationErrorKind.RATE_LIMIT, GenerationErrorKind.SERVER})


class GenerationError(Exception):
    """A classified failure reported by a ``TextGenerator``.

    Attributes:
        kind: Failure class.
        detail: Technical detail from the provider, for logs.
        user_message: Message suitable for end users.
    """

    def __init__(self, kind: GenerationErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        self.user_message = GENERATION_MESSAGES[kind]
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS
