"""Paragraph-aligned chunking with page provenance.

Splits normalized document text into chunks that fit a token budget for
downstream prompts. Paragraphs are never split: a chunk is flushed when the
next paragraph would push it over the budget, and a paragraph that is over
the budget on its own becomes a single oversized chunk.

Every paragraph carries the page it came from (the paragraph-to-page map
built during extraction), so each chunk knows its inclusive page range.
Joining the chunks' content with a blank line reproduces the input text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from statistics import fmean

from studyprep.extractor.errors import PageMapMismatchError
from studyprep.extractor.headings import is_heading
from studyprep.extractor.tokens import estimate_tokens
from studyprep.extractor.types import Chunk, ExtractionMethod, PageSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000
PARAGRAPH_SEPARATOR = "\n\n"

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def split_paragraphs(text: str) -> list[str]:
    """Split *text* on blank-line boundaries, dropping blank paragraphs."""
    return [p.strip() for p in _PARAGRAPH_BREAK_RE.split(text) if p.strip()]


def validate_page_map(paragraphs: Sequence[str], page_map: Sequence[int]) -> None:
    """Check that *page_map* has one page number per paragraph, in page order.

    Raises:
        PageMapMismatchError: If lengths differ or the entries are not ordered
            1-based page numbers.
    """
    if not all(isinstance(page, int) and not isinstance(page, bool) for page in page_map):
        raise PageMapMismatchError("paragraph page map must contain only integer page numbers")
    if len(page_map) != len(paragraphs):
        raise PageMapMismatchError(
            f"paragraph page map length ({len(page_map)}) does not match "
            f"paragraph count ({len(paragraphs)})"
        )
    if any(page < 1 for page in page_map) or any(
        later < earlier for earlier, later in zip(page_map, page_map[1:])
    ):
        raise PageMapMismatchError(
            "paragraph page map must hold non-decreasing 1-based page numbers"
        )


def _describe_pages(
    pages: Sequence[int],
    page_sources: Mapping[int, PageSource] | None,
) -> tuple[ExtractionMethod, float | None]:
    """Derive a chunk's extraction method and OCR confidence from its pages."""
    if not page_sources:
        return ExtractionMethod.DIGITAL, None

    methods: set[ExtractionMethod] = set()
    confidences: dict[int, float] = {}
    for page in pages:
        source = page_sources.get(page)
        if source is None:
            methods.add(ExtractionMethod.DIGITAL)
            continue
        methods.add(source.method)
        if source.method is ExtractionMethod.OCR and source.confidence is not None:
            confidences[page] = source.confidence

    if methods == {ExtractionMethod.OCR}:
        method = ExtractionMethod.OCR
    elif ExtractionMethod.OCR in methods:
        method = ExtractionMethod.HYBRID
    else:
        method = ExtractionMethod.DIGITAL

    confidence = fmean(confidences.values()) if confidences else None
    return method, confidence


def _first_heading(paragraphs: Sequence[str]) -> str | None:
    for paragraph in paragraphs:
        for line in paragraph.split("\n"):
            if is_heading(line):
                return line.strip()
    return None


def _make_chunk(
    paragraphs: Sequence[str],
    pages: Sequence[int],
    page_sources: Mapping[int, PageSource] | None,
) -> Chunk:
    content = PARAGRAPH_SEPARATOR.join(paragraphs)
    method, confidence = _describe_pages(pages, page_sources)
    return Chunk(
        content=content,
        page_start=pages[0],
        page_end=pages[-1],
        token_count=estimate_tokens(content),
        extraction_method=method,
        confidence=confidence,
        heading=_first_heading(paragraphs),
    )


def chunk_text(
    text: str,
    page_map: Sequence[int],
    max_tokens: int = DEFAULT_MAX_TOKENS,
    page_sources: Mapping[int, PageSource] | None = None,
) -> list[Chunk]:
    """Greedily pack paragraphs of *text* into token-bounded chunks.

    Args:
        text: Normalized text, paragraphs separated by blank lines.
        page_map: Page number of each paragraph, in order.
        max_tokens: Token budget per chunk.
        page_sources: Optional page number -> PageSource lookup used to tag
            each chunk's extraction method and OCR confidence. Without it
            every chunk is tagged digital.

    Returns:
        Chunks in document order.

    Raises:
        PageMapMismatchError: If *page_map* does not match the paragraphs.
    """
    paragraphs = split_paragraphs(text)
    validate_page_map(paragraphs, page_map)

    chunks: list[Chunk] = []
    buffer: list[str] = []
    buffer_pages: list[int] = []
    buffer_text = ""

    for paragraph, page in zip(paragraphs, page_map):
        candidate = buffer_text + PARAGRAPH_SEPARATOR + paragraph if buffer else paragraph

        if buffer and estimate_tokens(candidate) > max_tokens:
            chunks.append(_make_chunk(buffer, buffer_pages, page_sources))
            buffer, buffer_pages, buffer_text = [paragraph], [page], paragraph
        else:
            buffer.append(paragraph)
            buffer_pages.append(page)
            buffer_text = candidate

    if buffer:
        chunks.append(_make_chunk(buffer, buffer_pages, page_sources))

    oversized = sum(1 for chunk in chunks if chunk.token_count > max_tokens)
    if oversized:
        logger.debug(
            "%d chunk(s) exceed the %d-token budget (single unsplittable paragraphs)",
            oversized,
            max_tokens,
        )
    logger.debug("Chunked %d paragraphs into %d chunks", len(paragraphs), len(chunks))
    return chunks
