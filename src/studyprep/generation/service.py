"""Retrying calls into an external text generator.

``generate_with_retry`` wraps a ``TextGenerator`` call with bounded
exponential backoff on rate-limit and server-class failures (tenacity).
Other classified failures (auth, content blocked, malformed response) are
raised on the first occurrence; anything unclassified is reported as
UNKNOWN. Blank responses count as malformed.

``select_content`` picks the leading chunks of an extraction artifact that
fit a prompt budget, for content-scoped prompts.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from studyprep.config.settings import GenerationSettings
from studyprep.extractor.chunker import PARAGRAPH_SEPARATOR
from studyprep.extractor.types import ExtractionArtifact
from studyprep.generation.types import GenerationError, GenerationErrorKind

logger = logging.getLogger(__name__)


class TextGenerator(ABC):
    """Port for an external "generate text from prompt" capability."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return generated text, raising GenerationError on classified failures."""


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GenerationError) and exc.retryable


async def _generate_once(generator: TextGenerator, prompt: str) -> str:
    try:
        text = await generator.generate(prompt)
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(GenerationErrorKind.UNKNOWN, str(e)) from e

    if not isinstance(text, str) or not text.strip():
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "empty response")
    return text


async def generate_with_retry(
    generator: TextGenerator,
    prompt: str,
    settings: GenerationSettings | None = None,
) -> str:
    """Call *generator* with backoff on transient failures.

    Args:
        generator: The external text generator.
        prompt: Fully built prompt text.
        settings: Retry policy; loaded from config files if None.

    Returns:
        The generated text.

    Raises:
        GenerationError: The last classified failure once retries are exhausted,
            or the first non-retryable one.
    """
    settings = settings or GenerationSettings()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=wait_random_exponential(
            multiplier=1, min=settings.backoff_min, max=settings.backoff_max
        ),
        retry=retry_if_exception(_is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    text = await retrying(_generate_once, generator, prompt)
    logger.info("Generated %d chars from %d-char prompt", len(text), len(prompt))
    return text


def select_content(artifact: ExtractionArtifact, max_tokens: int) -> str:
    """Join the artifact's leading chunks that fit within *max_tokens*.

    The first chunk is always included, even when it alone is over budget,
    so a non-empty artifact never yields empty prompt content.
    """
    selected: list[str] = []
    used = 0
    for chunk in artifact.chunks:
        if selected and used + chunk.token_count > max_tokens:
            break
        selected.append(chunk.content)
        used += chunk.token_count

    logger.debug(
        "Selected %d of %d chunks (%d tokens) for prompt content",
        len(selected),
        len(artifact.chunks),
        used,
    )
    return PARAGRAPH_SEPARATOR.join(selected)
