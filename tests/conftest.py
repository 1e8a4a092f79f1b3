"""Pytest fixtures and shared test configuration.

Fixtures:
    - make_pdf: Build an in-memory PDF from per-page paragraph lists
    - settings: ExtractionSettings with no retry delay
    - paragraph: Deterministic paragraph text long enough to count as digital

Pages given as ``None`` are left blank so the pipeline treats them as
scanned and routes them through OCR.
"""

from collections.abc import Callable

import pymupdf
import pytest

from studyprep.config import ExtractionSettings

PageContent = list[str] | None


def build_pdf(pages: list[PageContent], **save_options) -> bytes:
    """Create a PDF with one text box per paragraph, spaced well apart."""
    doc = pymupdf.open()
    for paragraphs in pages:
        page = doc.new_page()
        y = 72
        for text in paragraphs or []:
            page.insert_textbox(pymupdf.Rect(72, y, 540, y + 110), text, fontsize=11)
            y += 160
    data = doc.tobytes(**save_options)
    doc.close()
    return data


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Return the PDF builder."""
    return build_pdf


@pytest.fixture
def settings() -> ExtractionSettings:
    """Extraction settings with defaults and zero retry backoff."""
    return ExtractionSettings(retry_backoff_min=0, retry_backoff_max=0)


@pytest.fixture
def paragraph() -> Callable[[str], str]:
    """Return a factory for ~150-character paragraphs tagged with *label*."""

    def _make(label: str) -> str:
        return (
            f"{label} covers the material in enough detail to be read from the "
            "embedded text layer without falling back to optical recognition."
        )

    return _make
