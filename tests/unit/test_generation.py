"""Unit tests for the text-generation collaborator port."""

import pytest

from studyprep.config import GenerationSettings
from studyprep.extractor.types import (
    Chunk,
    ExtractionArtifact,
    ExtractionMetadata,
)
from studyprep.generation import (
    GenerationError,
    GenerationErrorKind,
    generate_with_retry,
    select_content,
)
from tests.fakes import ScriptedGenerator, rate_limited


@pytest.fixture
def gen_settings() -> GenerationSettings:
    return GenerationSettings(max_attempts=3, backoff_min=0, backoff_max=0)


def _artifact(*token_counts: int) -> ExtractionArtifact:
    chunks = [
        Chunk(content=f"chunk {i}", page_start=i, page_end=i, token_count=tokens)
        for i, tokens in enumerate(token_counts, start=1)
    ]
    return ExtractionArtifact(
        chunks=chunks,
        total_pages=len(chunks),
        topics=[],
        full_text="\n\n".join(c.content for c in chunks),
        metadata=ExtractionMetadata(has_digital_text=True),
    )


class TestGenerateWithRetry:
    """Tests for retry classification around a generator call."""

    async def test_returns_text(self, gen_settings: GenerationSettings) -> None:
        generator = ScriptedGenerator("Q1. What is entropy?")

        text = await generate_with_retry(generator, "make questions", gen_settings)

        assert text == "Q1. What is entropy?"
        assert generator.prompts == ["make questions"]

    async def test_retries_rate_limit_then_succeeds(self, gen_settings: GenerationSettings) -> None:
        """Rate-limit failures are retried with backoff."""
        generator = ScriptedGenerator(rate_limited(), rate_limited(), "answer")

        assert await generate_with_retry(generator, "p", gen_settings) == "answer"
        assert len(generator.prompts) == 3

    async def test_server_errors_exhaust_attempts(self, gen_settings: GenerationSettings) -> None:
        generator = ScriptedGenerator(
            *(GenerationError(GenerationErrorKind.SERVER, "503") for _ in range(3))
        )

        with pytest.raises(GenerationError) as excinfo:
            await generate_with_retry(generator, "p", gen_settings)

        assert excinfo.value.kind is GenerationErrorKind.SERVER
        assert len(generator.prompts) == 3

    @pytest.mark.parametrize(
        "kind",
        [GenerationErrorKind.AUTH, GenerationErrorKind.CONTENT_BLOCKED],
    )
    async def test_non_retryable_raise_immediately(
        self, gen_settings: GenerationSettings, kind: GenerationErrorKind
    ) -> None:
        generator = ScriptedGenerator(GenerationError(kind, "nope"), "unused")

        with pytest.raises(GenerationError) as excinfo:
            await generate_with_retry(generator, "p", gen_settings)

        assert excinfo.value.kind is kind
        assert len(generator.prompts) == 1

    async def test_blank_response_is_malformed(self, gen_settings: GenerationSettings) -> None:
        generator = ScriptedGenerator("   \n")

        with pytest.raises(GenerationError) as excinfo:
            await generate_with_retry(generator, "p", gen_settings)

        assert excinfo.value.kind is GenerationErrorKind.MALFORMED_RESPONSE

    async def test_unclassified_errors_become_unknown(self, gen_settings: GenerationSettings) -> None:
        generator = ScriptedGenerator(KeyError("candidates"))

        with pytest.raises(GenerationError) as excinfo:
            await generate_with_retry(generator, "p", gen_settings)

        assert excinfo.value.kind is GenerationErrorKind.UNKNOWN
        assert len(generator.prompts) == 1


class TestGenerationError:
    def test_user_message_and_retryable(self) -> None:
        error = GenerationError(GenerationErrorKind.RATE_LIMIT, "429")

        assert error.retryable
        assert "Too many requests" in error.user_message
        assert str(error) == "rate_limit: 429"
        assert not GenerationError(GenerationErrorKind.AUTH).retryable


class TestSelectContent:
    """Tests for budgeted prompt content selection."""

    def test_takes_leading_chunks_within_budget(self) -> None:
        artifact = _artifact(400, 400, 400, 400)

        assert select_content(artifact, max_tokens=1000) == "chunk 1\n\nchunk 2"

    def test_first_chunk_always_included(self) -> None:
        assert select_content(_artifact(5000, 10), max_tokens=100) == "chunk 1"

    def test_everything_fits(self) -> None:
        assert select_content(_artifact(10, 10, 10), max_tokens=100) == (
            "chunk 1\n\nchunk 2\n\nchunk 3"
        )
