"""Collaborator port for the external question-generation and chat service."""

from studyprep.generation.service import TextGenerator, generate_with_retry, select_content
from studyprep.generation.types import GenerationError, GenerationErrorKind

__all__ = [
    "GenerationError",
    "GenerationErrorKind",
    "TextGenerator",
    "generate_with_retry",
    "select_content",
]
