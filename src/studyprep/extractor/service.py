"""Per-document PDF extraction with page-level OCR fallback.

Runs the extraction state machine for a single PDF:

    loading -> extracting -> (ocr)* -> chunking -> complete

1. **Validation** -- MIME type must name PDF and the payload must fit the
   size limit; both are checked before the document is opened.
2. **Digital text** -- each page's embedded text layer is used when its
   trimmed length exceeds ``min_digital_chars``. Paragraphs are the page's
   text blocks.
3. **OCR** -- pages without a usable text layer are rendered at
   ``render_scale``, contrast-stretched, and recognized by Tesseract. The
   OCR session is opened lazily on the first scanned page and reused.

A failed OCR initialization is a warning, not an error: digital pages still
contribute, and only a document with no text at all is rejected. The OCR
session is released on every exit path.

Edge cases handled:
- Encrypted PDFs: rejected with ENCRYPTED_DOCUMENT before extraction.
- Unreadable pages: warning, the page is treated as having no text layer.
- Digital pages without text blocks: "No paragraphs detected" warning.
"""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
import time
from pathlib import Path

import pymupdf
from PIL import Image
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from studyprep.config.settings import ExtractionSettings
from studyprep.extractor.assembler import ExtractionState, assemble_artifact
from studyprep.extractor.chunker import split_paragraphs
from studyprep.extractor.errors import (
    ErrorKind,
    ExtractionError,
    ExtractionOutcome,
    PageMapMismatchError,
)
from studyprep.extractor.ocr import (
    OcrAdapter,
    OcrEngine,
    OcrInitializationError,
    OcrRecognitionError,
    OcrState,
    TesseractEngine,
)
from studyprep.extractor.progress import ProgressListener, ProgressReporter, Stage
from studyprep.extractor.types import ExtractionArtifact

logger = logging.getLogger(__name__)

__all__ = [
    "extract_pdf",
    "process_pdf",
    "process_pdf_file",
    "process_pdf_with_retry",
    "validate_input",
]

# PyMuPDF block tuple: (x0, y0, x1, y1, text, block_no, block_type)
_TEXT_BLOCK = 0


def validate_input(data: bytes, mime_type: str | None, settings: ExtractionSettings) -> None:
    """Reject inputs that must never reach the PDF parser.

    Raises:
        ExtractionError: INVALID_FILE_TYPE or FILE_TOO_LARGE.
    """
    if not mime_type or "pdf" not in mime_type.lower():
        raise ExtractionError(ErrorKind.INVALID_FILE_TYPE)
    if len(data) > settings.max_file_size_bytes:
        raise ExtractionError.file_too_large(settings.max_file_size_mb)


def _open_document(data: bytes) -> pymupdf.Document:
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except Exception as e:
        logger.error("Cannot open PDF (%d bytes): %s", len(data), e)
        raise ExtractionError(ErrorKind.DOCUMENT_LOAD_FAILED) from e

    if doc.needs_pass:
        doc.close()
        logger.warning("Encrypted PDF rejected")
        raise ExtractionError(ErrorKind.ENCRYPTED_DOCUMENT)
    return doc


def _read_page_text(page: pymupdf.Page, page_number: int, state: ExtractionState) -> str:
    try:
        return page.get_text("text") or ""
    except Exception as e:
        state.warn(f"Failed to read text on page {page_number}: {e}")
        return ""


def _page_blocks(page: pymupdf.Page, page_text: str) -> list[str]:
    """Text blocks of *page* in reading order; falls back to blank-line splits."""
    try:
        blocks = page.get_text("blocks", sort=True)
    except Exception as e:
        logger.debug("Block extraction failed on page %d: %s", page.number + 1, e)
        return split_paragraphs(page_text)
    return [block[4] for block in blocks if block[6] == _TEXT_BLOCK]


def _render_page(page: pymupdf.Page, scale: float) -> Image.Image:
    """Render *page* to an RGB image at *scale* times its natural size."""
    pix = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
    img_data = pix.tobytes("png")
    return Image.open(io.BytesIO(img_data)).convert("RGB")


def _extract_digital_page(
    page: pymupdf.Page,
    page_number: int,
    page_text: str,
    state: ExtractionState,
) -> None:
    state.has_digital_text = True
    kept = state.add_digital_page(page_number, _page_blocks(page, page_text))
    if not kept:
        state.warn(f"No paragraphs detected on page {page_number}")
    else:
        logger.debug("Page %d: %d digital paragraphs", page_number, kept)


async def _extract_scanned_page(
    page: pymupdf.Page,
    page_number: int,
    state: ExtractionState,
    adapter: OcrAdapter,
    settings: ExtractionSettings,
) -> None:
    state.has_scanned_content = True

    if adapter.state is OcrState.FAILED:
        logger.debug("Skipping OCR on page %d: engine unavailable", page_number)
        return

    state.ocr_attempted = True
    try:
        await adapter.initialize()
    except OcrInitializationError as e:
        state.ocr_init_failed = True
        state.warn(f"{e}. OCR will be skipped for scanned pages.")
        return

    try:
        image = _render_page(page, settings.render_scale)
    except Exception as e:
        state.warn(f"Failed to render page {page_number} for OCR: {e}")
        return

    try:
        result = await adapter.recognize(adapter.preprocess(image))
    except OcrRecognitionError as e:
        state.warn(f"OCR failed on page {page_number}: {e}")
        return

    kept = state.add_ocr_page(page_number, result.text, result.confidence)
    if not kept:
        state.warn(f"No text recognized on page {page_number}")
    else:
        logger.debug(
            "Page %d: %d OCR paragraphs (confidence %.1f)",
            page_number,
            kept,
            result.confidence,
        )


async def extract_pdf(
    data: bytes,
    *,
    settings: ExtractionSettings,
    adapter: OcrAdapter,
    reporter: ProgressReporter,
) -> ExtractionArtifact:
    """Run the page loop over an already validated PDF payload.

    The caller owns *adapter* and is responsible for terminating it.

    Raises:
        ExtractionError: Load failures and empty-result classifications.
        PageMapMismatchError: If paragraph bookkeeping is inconsistent.
    """
    started_at = time.perf_counter()

    reporter.report(Stage.LOADING, 10, "Loading PDF document...")
    doc = _open_document(data)
    state = ExtractionState(total_pages=len(doc))

    try:
        total = state.total_pages
        logger.info("Extracting %d-page PDF (%d bytes)", total, len(data))
        reporter.report(Stage.EXTRACTING, 20, "Extracting text from pages...")

        for index, page in enumerate(doc):
            await asyncio.sleep(0)

            page_number = index + 1
            progress = 20 + (page_number / total) * 50
            page_text = _read_page_text(page, page_number, state)

            if len(page_text.strip()) > settings.min_digital_chars:
                reporter.report(
                    Stage.EXTRACTING,
                    progress,
                    f"Extracting text from page {page_number}/{total}...",
                )
                _extract_digital_page(page, page_number, page_text, state)
            else:
                reporter.report(
                    Stage.OCR,
                    progress,
                    f"Processing scanned content on page {page_number}/{total}...",
                )
                await _extract_scanned_page(page, page_number, state, adapter, settings)
    finally:
        doc.close()

    reporter.report(Stage.CHUNKING, 80, "Analyzing content structure...")
    artifact = assemble_artifact(state, settings, started_at)
    reporter.report(Stage.COMPLETE, 100, "Processing complete!")

    logger.info(
        "Extraction succeeded: %d pages, %d chunks, digital=%s, scanned=%s, "
        "ocr_confidence=%.1f, %.2fs",
        artifact.total_pages,
        len(artifact.chunks),
        artifact.metadata.has_digital_text,
        artifact.metadata.has_scanned_content,
        artifact.metadata.ocr_confidence,
        artifact.metadata.processing_time,
    )
    return artifact


async def process_pdf(
    data: bytes,
    mime_type: str | None = "application/pdf",
    *,
    settings: ExtractionSettings | None = None,
    listener: ProgressListener | None = None,
    ocr_engine: OcrEngine | None = None,
) -> ExtractionOutcome:
    """Extract, chunk, and index one PDF.

    Each call owns a fresh ``OcrAdapter`` that is terminated before
    returning, whatever the outcome.

    Args:
        data: Raw PDF bytes.
        mime_type: Declared content type of *data*.
        settings: Extraction configuration; loaded from config files if None.
        listener: Optional progress listener.
        ocr_engine: OCR backend; defaults to Tesseract per *settings*.

    Returns:
        ExtractionOutcome holding the artifact, or a classified error.

    Raises:
        PageMapMismatchError: Paragraph bookkeeping defect; never converted
            into an outcome.
    """
    settings = settings or ExtractionSettings()
    reporter = ProgressReporter(listener)
    engine = ocr_engine or TesseractEngine(settings.ocr_language, settings.tesseract_cmd)

    async with OcrAdapter(engine, contrast=settings.contrast) as adapter:
        try:
            validate_input(data, mime_type, settings)
            artifact = await extract_pdf(
                data, settings=settings, adapter=adapter, reporter=reporter
            )
        except ExtractionError as e:
            logger.warning("PDF extraction failed [%s]: %s", e.kind.value, e.message)
            return ExtractionOutcome(error=e)
        except PageMapMismatchError:
            raise
        except Exception as e:
            logger.exception("Unexpected error while processing PDF")
            return ExtractionOutcome(
                error=ExtractionError.processing_failed(str(e) or type(e).__name__)
            )

    return ExtractionOutcome(artifact=artifact)


def _is_recoverable_failure(outcome: ExtractionOutcome) -> bool:
    return outcome.error is not None and outcome.error.recoverable


async def process_pdf_with_retry(
    data: bytes,
    mime_type: str | None = "application/pdf",
    *,
    settings: ExtractionSettings | None = None,
    listener: ProgressListener | None = None,
    ocr_engine: OcrEngine | None = None,
) -> ExtractionOutcome:
    """Run ``process_pdf``, retrying while the outcome is a recoverable error.

    Attempts are capped at ``settings.retry_max_attempts`` with exponential
    delay between them. Fatal errors are returned immediately. After the
    last attempt the final outcome is returned as-is.
    """
    settings = settings or ExtractionSettings()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=settings.retry_backoff_min,
            max=settings.retry_backoff_max,
        ),
        retry=retry_if_result(_is_recoverable_failure),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=lambda retry_state: retry_state.outcome.result(),
    )
    return await retrying(
        process_pdf,
        data,
        mime_type,
        settings=settings,
        listener=listener,
        ocr_engine=ocr_engine,
    )


async def process_pdf_file(
    pdf_path: Path,
    *,
    settings: ExtractionSettings | None = None,
    listener: ProgressListener | None = None,
    ocr_engine: OcrEngine | None = None,
) -> ExtractionOutcome:
    """Read *pdf_path* and process it, guessing the MIME type from its name."""
    mime_type, _ = mimetypes.guess_type(pdf_path.name)
    logger.info("Processing %s (%s)", pdf_path.name, mime_type or "unknown type")
    return await process_pdf(
        pdf_path.read_bytes(),
        mime_type,
        settings=settings,
        listener=listener,
        ocr_engine=ocr_engine,
    )
