"""Error taxonomy and result type for the extraction pipeline.

Fatal conditions are raised as ``ExtractionError`` at the point where they
are detected, each tagged with a stable ``ErrorKind`` and a ``recoverable``
flag. ``process_pdf`` turns them into an ``ExtractionOutcome`` so callers
branch on ``outcome.error.kind`` instead of inspecting message text.

``PageMapMismatchError`` is not an ``ExtractionError``: it
signals a programming defect in paragraph/page bookkeeping and always
propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from studyprep.extractor.types import ExtractionArtifact


class ErrorKind(str, Enum):
    """Stable machine-readable failure codes."""

    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    ENCRYPTED_DOCUMENT = "ENCRYPTED_DOCUMENT"
    DOCUMENT_LOAD_FAILED = "DOCUMENT_LOAD_FAILED"
    OCR_INIT_FAILED_NO_TEXT = "OCR_INIT_FAILED_NO_TEXT"
    NO_TEXT_FROM_OCR = "NO_TEXT_FROM_OCR"
    NO_TEXT_EXTRACTED = "NO_TEXT_EXTRACTED"
    PROCESSING_FAILED = "PROCESSING_FAILED"


# User-facing messages, keyed by kind
USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_FILE_TYPE: "Invalid file type. Please upload a PDF file.",
    ErrorKind.FILE_TOO_LARGE: "File too large. Please upload a PDF smaller than {limit}MB.",
    ErrorKind.ENCRYPTED_DOCUMENT: (
        "This PDF is password protected. Please upload an unlocked copy."
    ),
    ErrorKind.DOCUMENT_LOAD_FAILED: (
        "The PDF could not be opened. The file may be corrupted."
    ),
    ErrorKind.OCR_INIT_FAILED_NO_TEXT: (
        "OCR is unavailable and this PDF has no extractable text. "
        "Please upload a PDF with selectable text."
    ),
    ErrorKind.NO_TEXT_FROM_OCR: (
        "No text was found via OCR. The scanned pages may be blank or unreadable."
    ),
    ErrorKind.NO_TEXT_EXTRACTED: (
        "No text could be extracted from this PDF. "
        "The document may be corrupted or contain only images."
    ),
    ErrorKind.PROCESSING_FAILED: "Failed to process PDF: {detail}",
}

_RECOVERABLE_KINDS = frozenset({ErrorKind.PROCESSING_FAILED})


class ExtractionError(Exception):
    """A classified pipeline failure.

    Attributes:
        kind: Stable failure code.
        message: Human-readable description suitable for end users.
        recoverable: Whether retrying the same input may succeed.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        recoverable: bool | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or USER_MESSAGES[kind]
        self.recoverable = (
            kind in _RECOVERABLE_KINDS if recoverable is None else recoverable
        )
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"ExtractionError(kind={self.kind.value!r}, message={self.message!r}, "
            f"recoverable={self.recoverable})"
        )

    @classmethod
    def file_too_large(cls, limit_mb: int) -> ExtractionError:
        return cls(
            ErrorKind.FILE_TOO_LARGE,
            USER_MESSAGES[ErrorKind.FILE_TOO_LARGE].format(limit=limit_mb),
        )

    @classmethod
    def processing_failed(cls, detail: str) -> ExtractionError:
        return cls(
            ErrorKind.PROCESSING_FAILED,
            USER_MESSAGES[ErrorKind.PROCESSING_FAILED].format(detail=detail),
        )


class PageMapMismatchError(ValueError):
    """Paragraph-to-page map does not line up with the text it describes."""


@dataclass(frozen=True)
class ExtractionOutcome:
    """Either an artifact or a classified error, never both."""

    artifact: ExtractionArtifact | None = None
    error: ExtractionError | None = None

    def __post_init__(self) -> None:
        if (self.artifact is None) == (self.error is None):
            raise ValueError("ExtractionOutcome needs exactly one of artifact or error")

    @property
    def ok(self) -> bool:
        return self.artifact is not None

    def unwrap(self) -> ExtractionArtifact:
        """Return the artifact, or raise the stored error."""
        if self.error is not None:
            raise self.error
        assert self.artifact is not None
        return self.artifact
