"""Accumulated extraction state and final artifact assembly.

``ExtractionState`` is filled in page by page by the extraction loop: the
normalized paragraphs, the paragraph-to-page map that runs parallel to them,
per-page provenance, the OCR confidence running sum, and warnings.

``assemble_artifact`` turns a finished state into an ``ExtractionArtifact``,
or raises a classified ``ExtractionError`` when no text was recovered.

Normalization keeps paragraph and line structure, because the chunker splits
on blank lines and the heading detector works line by line: inside each
paragraph, runs of spaces and tabs collapse to one space, lines are trimmed,
and empty lines are dropped. Paragraphs are joined by exactly one blank line.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field

from studyprep.config.settings import ExtractionSettings
from studyprep.extractor.chunker import PARAGRAPH_SEPARATOR, chunk_text, split_paragraphs
from studyprep.extractor.errors import ErrorKind, ExtractionError
from studyprep.extractor.headings import extract_headings
from studyprep.extractor.types import (
    ExtractionArtifact,
    ExtractionMetadata,
    ExtractionMethod,
    PageSource,
)

logger = logging.getLogger(__name__)

_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")


def normalize_paragraph(text: str) -> str:
    """Collapse horizontal whitespace, trim lines, and drop empty lines."""
    lines = (_HORIZONTAL_WS_RE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


@dataclass
class ExtractionState:
    """Everything the page loop learns about one document."""

    total_pages: int = 0
    paragraphs: list[str] = field(default_factory=list)
    page_map: list[int] = field(default_factory=list)
    page_sources: dict[int, PageSource] = field(default_factory=dict)
    has_digital_text: bool = False
    has_scanned_content: bool = False
    ocr_attempted: bool = False
    ocr_succeeded: bool = False
    ocr_init_failed: bool = False
    ocr_confidence_total: float = 0.0
    ocr_page_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.warnings.append(message)

    def add_paragraphs(self, page_number: int, texts: list[str]) -> int:
        """Normalize *texts* and record the non-empty ones for *page_number*.

        Returns:
            Number of paragraphs kept.
        """
        kept = 0
        for text in texts:
            paragraph = normalize_paragraph(text)
            if not paragraph:
                continue
            self.paragraphs.append(paragraph)
            self.page_map.append(page_number)
            kept += 1
        return kept

    def add_digital_page(self, page_number: int, blocks: list[str]) -> int:
        kept = self.add_paragraphs(page_number, blocks)
        if kept:
            self.page_sources[page_number] = PageSource(
                page_number=page_number, method=ExtractionMethod.DIGITAL
            )
        return kept

    def add_ocr_page(self, page_number: int, text: str, confidence: float) -> int:
        kept = self.add_paragraphs(page_number, split_paragraphs(text))
        if kept:
            self.ocr_succeeded = True
            self.ocr_confidence_total += confidence
            self.ocr_page_count += 1
            self.page_sources[page_number] = PageSource(
                page_number=page_number,
                method=ExtractionMethod.OCR,
                confidence=confidence,
            )
        return kept

    @property
    def full_text(self) -> str:
        return PARAGRAPH_SEPARATOR.join(self.paragraphs).strip()

    @property
    def mean_ocr_confidence(self) -> float:
        if not self.ocr_page_count:
            return 0.0
        return self.ocr_confidence_total / self.ocr_page_count


def classify_empty_result(state: ExtractionState) -> ExtractionError:
    """Pick the fatal error that explains why *state* produced no text."""
    if state.ocr_init_failed and not state.has_digital_text:
        return ExtractionError(ErrorKind.OCR_INIT_FAILED_NO_TEXT)
    if (
        not state.has_digital_text
        and state.has_scanned_content
        and state.ocr_attempted
        and not state.ocr_init_failed
    ):
        return ExtractionError(ErrorKind.NO_TEXT_FROM_OCR)
    return ExtractionError(ErrorKind.NO_TEXT_EXTRACTED)


def assemble_artifact(
    state: ExtractionState,
    settings: ExtractionSettings,
    started_at: float,
) -> ExtractionArtifact:
    """Validate the accumulated text and package the pipeline output.

    Args:
        state: Completed per-document state from the page loop.
        settings: Chunk budget and topic limit.
        started_at: ``time.perf_counter()`` value taken when the run began.

    Raises:
        ExtractionError: If no text was extracted by any method.
        PageMapMismatchError: If the page map drifted from the paragraphs.
    """
    full_text = state.full_text
    if not full_text:
        raise classify_empty_result(state)

    topics = extract_headings(full_text, settings.max_topics)
    chunks = chunk_text(
        full_text,
        state.page_map,
        max_tokens=settings.max_chunk_tokens,
        page_sources=state.page_sources,
    )

    metadata = ExtractionMetadata(
        has_digital_text=state.has_digital_text,
        has_scanned_content=state.has_scanned_content,
        ocr_attempted=state.ocr_attempted,
        ocr_succeeded=state.ocr_succeeded,
        ocr_confidence=state.mean_ocr_confidence,
        processing_time=time.perf_counter() - started_at,
        warnings=list(state.warnings) or None,
    )

    logger.info(
        "Assembled artifact: %d pages, %d paragraphs, %d chunks, %d topics, %d warnings",
        state.total_pages,
        len(state.paragraphs),
        len(chunks),
        len(topics),
        len(state.warnings),
    )

    return ExtractionArtifact(
        chunks=chunks,
        total_pages=state.total_pages,
        topics=topics,
        full_text=full_text,
        metadata=metadata,
    )
