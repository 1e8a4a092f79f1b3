"""Shared types for the extraction pipeline.

Defines the immutable output artifact (ExtractionArtifact, Chunk,
ExtractionMetadata) plus the per-page provenance record used between the
page extraction loop, the chunker, and the result assembler.

All models are frozen pydantic models so the artifact can be handed to
downstream collaborators as-is and serialized with ``model_dump()``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ExtractionMethod(str, Enum):
    """How the text of a page or chunk was obtained."""

    DIGITAL = "digital"
    OCR = "ocr"
    HYBRID = "hybrid"


class PageSource(BaseModel):
    """Provenance of one contributing page.

    Attributes:
        page_number: 1-based page number in the original document.
        method: DIGITAL for text-layer pages, OCR for rendered pages.
        confidence: Mean OCR word confidence (0-100); None for digital pages.
    """

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    method: ExtractionMethod
    confidence: float | None = Field(default=None, ge=0, le=100)


class Chunk(BaseModel):
    """A bounded-size, paragraph-aligned segment of extracted text.

    Attributes:
        content: Paragraphs joined by a blank line. Never empty.
        page_start: First page (1-based, inclusive) the content came from.
        page_end: Last page (1-based, inclusive) the content came from.
        token_count: Estimated token count of ``content``.
        extraction_method: digital, ocr, or hybrid when both contributed.
        confidence: Mean OCR confidence of the chunk's OCR pages. Only set
            when at least one OCR page contributed.
        heading: First heading-like line inside the chunk, if any.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1)
    page_start: int = Field(ge=1)
    page_end: int = Field(ge=1)
    token_count: int = Field(ge=0)
    extraction_method: ExtractionMethod = ExtractionMethod.DIGITAL
    confidence: float | None = Field(default=None, ge=0, le=100)
    heading: str | None = None

    @model_validator(mode="after")
    def _check_page_range(self) -> Chunk:
        if self.page_start > self.page_end:
            raise ValueError(
                f"page_start ({self.page_start}) must not exceed page_end ({self.page_end})"
            )
        return self


class ExtractionMetadata(BaseModel):
    """Facts gathered while extracting a document.

    Attributes:
        has_digital_text: At least one page yielded a usable text layer.
        has_scanned_content: At least one page fell back to rendering.
        ocr_attempted: OCR initialization was tried.
        ocr_succeeded: OCR produced text on at least one page.
        ocr_confidence: Mean confidence across OCR-contributing pages, 0 if none.
        processing_time: Wall-clock seconds for the whole run.
        warnings: Non-fatal issues in the order they occurred, None if none.
    """

    model_config = ConfigDict(frozen=True)

    has_digital_text: bool = False
    has_scanned_content: bool = False
    ocr_attempted: bool = False
    ocr_succeeded: bool = False
    ocr_confidence: float = Field(default=0.0, ge=0, le=100)
    processing_time: float = Field(default=0.0, ge=0)
    warnings: list[str] | None = None


class ExtractionArtifact(BaseModel):
    """Top-level output of one successful pipeline run."""

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk]
    total_pages: int = Field(ge=0)
    topics: list[str]
    full_text: str
    metadata: ExtractionMetadata

    @property
    def token_count(self) -> int:
        """Sum of the chunks' estimated token counts."""
        return sum(chunk.token_count for chunk in self.chunks)
