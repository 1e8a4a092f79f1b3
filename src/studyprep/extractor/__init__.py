"""PDF text extraction, chunking, and topic indexing.

Turns a PDF payload into an ``ExtractionArtifact``: normalized full text,
paragraph-aligned chunks with page provenance, a heuristic topic list, and
metadata describing how the text was obtained (digital text layer, OCR, or
both). Scanned pages are recognized through a per-document OCR adapter.

Public API:
    process_pdf(data, mime_type, settings=..., listener=..., ocr_engine=...)
        -> ExtractionOutcome
    process_pdf_with_retry(...) -> ExtractionOutcome
    process_pdf_file(path, ...) -> ExtractionOutcome
"""

from studyprep.extractor.errors import (
    ErrorKind,
    ExtractionError,
    ExtractionOutcome,
    PageMapMismatchError,
)
from studyprep.extractor.progress import (
    LoggingProgressListener,
    ProgressEvent,
    ProgressRecorder,
    Stage,
)
from studyprep.extractor.service import (
    process_pdf,
    process_pdf_file,
    process_pdf_with_retry,
)
from studyprep.extractor.types import (
    Chunk,
    ExtractionArtifact,
    ExtractionMetadata,
    ExtractionMethod,
)

__all__ = [
    "Chunk",
    "ErrorKind",
    "ExtractionArtifact",
    "ExtractionError",
    "ExtractionMetadata",
    "ExtractionMethod",
    "ExtractionOutcome",
    "LoggingProgressListener",
    "PageMapMismatchError",
    "ProgressEvent",
    "ProgressRecorder",
    "Stage",
    "process_pdf",
    "process_pdf_file",
    "process_pdf_with_retry",
]
