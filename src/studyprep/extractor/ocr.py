"""OCR adapter: one explicitly owned Tesseract session per document.

The adapter wraps an ``OcrEngine`` behind a small lifecycle:

    UNINITIALIZED -> INITIALIZING -> READY | FAILED -> TERMINATED

- ``initialize()`` is idempotent. Concurrent callers share one in-flight
  initialization, so the engine opens at most one session per adapter. A
  failed initialization is recorded once and never retried; every later
  call re-raises the same ``OcrInitializationError``.
- ``preprocess()`` applies a fixed contrast stretch before recognition.
- ``recognize()`` runs the blocking engine call in a worker thread.
- ``terminate()`` is idempotent and safe before initialization. Close
  failures are logged, never raised.

There is no module-level adapter: each pipeline invocation constructs its
own, so concurrent documents never share OCR state.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_CONTRAST = 1.5
DEFAULT_TESSERACT_CMD = "tesseract"

# pytesseract reads the binary path from a module global on every call
_tesseract_cmd_lock = threading.Lock()


class OcrInitializationError(RuntimeError):
    """The OCR engine could not be brought up."""


class OcrRecognitionError(RuntimeError):
    """Recognition failed for a single image."""


@dataclass(frozen=True)
class OcrResult:
    """Recognized text and mean word confidence (0-100)."""

    text: str
    confidence: float


@dataclass(frozen=True)
class OcrInitFailure:
    """Recorded outcome of a failed initialization."""

    message: str
    recoverable: bool = True


class OcrState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"


# ---------------------------------------------------------------------------
# Engine interfaces
# ---------------------------------------------------------------------------


class OcrSession(ABC):
    """An open recognition session."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> OcrResult:
        """Recognize text in *image*."""

    @abstractmethod
    def close(self) -> None:
        """Release the session's resources."""


class OcrEngine(ABC):
    """Factory for OCR sessions."""

    @abstractmethod
    def open_session(self) -> OcrSession:
        """Open a new session, raising on any setup failure."""


# ---------------------------------------------------------------------------
# Tesseract implementation
# ---------------------------------------------------------------------------


@contextmanager
def _tesseract_binary(cmd: str) -> Iterator[None]:
    """Point pytesseract at *cmd* for the duration of one call.

    Calls are serialized so sessions configured with different binaries
    never see each other's path, and the previous value is restored after.
    """
    with _tesseract_cmd_lock:
        previous = pytesseract.pytesseract.tesseract_cmd
        pytesseract.pytesseract.tesseract_cmd = cmd
        try:
            yield
        finally:
            pytesseract.pytesseract.tesseract_cmd = previous


class TesseractSession(OcrSession):
    """Session backed by the ``tesseract`` binary through pytesseract."""

    def __init__(
        self,
        language: str,
        config: str = "",
        tesseract_cmd: str = DEFAULT_TESSERACT_CMD,
    ) -> None:
        self.language = language
        self.config = config
        self.tesseract_cmd = tesseract_cmd
        self.closed = False

    def recognize(self, image: Image.Image) -> OcrResult:
        if self.closed:
            raise OcrRecognitionError("Tesseract session is closed")
        try:
            with _tesseract_binary(self.tesseract_cmd):
                data = pytesseract.image_to_data(
                    image,
                    lang=self.language,
                    config=self.config,
                    output_type=pytesseract.Output.DICT,
                )
        except pytesseract.TesseractError as e:
            raise OcrRecognitionError(f"tesseract failed: {e}") from e
        return _result_from_data(data)

    def close(self) -> None:
        # pytesseract spawns one process per call; nothing is held open
        self.closed = True


class TesseractEngine(OcrEngine):
    """Opens Tesseract sessions after checking the binary and language data."""

    def __init__(self, language: str = "eng", tesseract_cmd: str = DEFAULT_TESSERACT_CMD) -> None:
        self.language = language
        self.tesseract_cmd = tesseract_cmd

    def open_session(self) -> TesseractSession:
        try:
            with _tesseract_binary(self.tesseract_cmd):
                version = pytesseract.get_tesseract_version()
                available = set(pytesseract.get_languages(config=""))
        except pytesseract.TesseractNotFoundError as e:
            raise OcrInitializationError(
                f"tesseract executable not found ({self.tesseract_cmd})"
            ) from e

        missing = [lang for lang in self.language.split("+") if lang not in available]
        if missing:
            raise OcrInitializationError(
                f"tesseract language data not installed: {', '.join(missing)}"
            )

        logger.info("Tesseract %s ready (lang=%s)", version, self.language)
        return TesseractSession(self.language, tesseract_cmd=self.tesseract_cmd)


def _result_from_data(data: dict[str, list]) -> OcrResult:
    """Rebuild text and mean confidence from ``image_to_data`` output.

    Words are grouped by (block, paragraph, line). Lines are joined with a
    newline and paragraphs with a blank line so the pipeline can split them
    like digital text.
    """
    paragraphs: dict[tuple[int, int], dict[int, list[str]]] = {}
    confidences: list[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        conf = float(data["conf"][i])
        if not word or conf < 0:
            continue
        key = (int(data["block_num"][i]), int(data["par_num"][i]))
        paragraphs.setdefault(key, {}).setdefault(int(data["line_num"][i]), []).append(word)
        confidences.append(conf)

    text = "\n\n".join(
        "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        for _, lines in sorted(paragraphs.items())
    )
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return OcrResult(text=text, confidence=min(100.0, max(0.0, confidence)))


# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------


def contrast_factor(contrast: float = DEFAULT_CONTRAST) -> float:
    """Standard contrast-correction factor for a contrast level."""
    return (259 * (contrast + 255)) / (255 * (259 - contrast))


def contrast_table(contrast: float = DEFAULT_CONTRAST) -> list[int]:
    """Lookup table mapping each 8-bit channel value through the stretch."""
    factor = contrast_factor(contrast)
    return [min(255, max(0, round(factor * (value - 128) + 128))) for value in range(256)]


def stretch_contrast(image: Image.Image, contrast: float = DEFAULT_CONTRAST) -> Image.Image:
    """Apply the contrast stretch uniformly to every RGB channel."""
    return _apply_table(image, contrast_table(contrast) * 3)


def _apply_table(image: Image.Image, table: list[int]) -> Image.Image:
    rgb = image if image.mode == "RGB" else image.convert("RGB")
    return rgb.point(table)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class OcrAdapter:
    """Lifecycle owner for a single OCR session."""

    def __init__(self, engine: OcrEngine, contrast: float = DEFAULT_CONTRAST) -> None:
        self._engine = engine
        self._table = contrast_table(contrast) * 3
        self._state = OcrState.UNINITIALIZED
        self._session: OcrSession | None = None
        self._init_task: asyncio.Future[None] | None = None
        self._failure: OcrInitFailure | None = None

    async def __aenter__(self) -> OcrAdapter:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.terminate()

    @property
    def state(self) -> OcrState:
        return self._state

    @property
    def failure(self) -> OcrInitFailure | None:
        return self._failure

    @property
    def initialization_attempted(self) -> bool:
        return self._init_task is not None

    async def initialize(self) -> None:
        """Open the engine session once; later calls wait for or reuse it.

        Raises:
            OcrInitializationError: If the session could not be opened, now
                or in an earlier attempt, or the adapter was terminated.
        """
        if self._state is OcrState.TERMINATED:
            raise OcrInitializationError("OCR adapter has already been terminated")
        if self._init_task is None:
            self._state = OcrState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._open_session())
        await asyncio.shield(self._init_task)

    async def _open_session(self) -> None:
        try:
            session = await asyncio.to_thread(self._engine.open_session)
        except Exception as e:
            detail = str(e) or type(e).__name__
            self._failure = OcrInitFailure(
                message=f"OCR engine failed to initialize: {detail}"
            )
            self._state = OcrState.FAILED
            logger.warning("%s", self._failure.message)
            raise OcrInitializationError(self._failure.message) from e

        self._session = session
        self._state = OcrState.READY
        logger.debug("OCR session opened")

    def preprocess(self, image: Image.Image) -> Image.Image:
        """Return a contrast-stretched RGB copy of *image*."""
        return _apply_table(image, self._table)

    async def recognize(self, image: Image.Image) -> OcrResult:
        """Recognize text in an already preprocessed image.

        Raises:
            OcrRecognitionError: If the adapter is not ready or the engine fails.
        """
        if self._state is not OcrState.READY or self._session is None:
            raise OcrRecognitionError(f"OCR session is not ready (state={self._state.value})")
        try:
            result = await asyncio.to_thread(self._session.recognize, image)
        except OcrRecognitionError:
            raise
        except Exception as e:
            raise OcrRecognitionError(str(e) or type(e).__name__) from e
        return OcrResult(
            text=result.text,
            confidence=min(100.0, max(0.0, float(result.confidence))),
        )

    async def terminate(self) -> None:
        """Release the session. Safe to call repeatedly or before initialize."""
        if self._state is OcrState.TERMINATED:
            return

        if self._init_task is not None and not self._init_task.done():
            try:
                await self._init_task
            except OcrInitializationError:
                logger.debug("OCR initialization failed while terminating")

        session, self._session = self._session, None
        self._state = OcrState.TERMINATED
        if session is None:
            return

        try:
            await asyncio.to_thread(session.close)
        except Exception:
            logger.warning("Failed to terminate OCR session", exc_info=True)
        else:
            logger.debug("OCR session closed")
