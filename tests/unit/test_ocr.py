"""Unit tests for the OCR adapter lifecycle and Tesseract wrappers."""

import asyncio

import pytesseract
import pytest
from PIL import Image

from studyprep.extractor.ocr import (
    OcrAdapter,
    OcrInitializationError,
    OcrRecognitionError,
    OcrState,
    TesseractEngine,
    TesseractSession,
    _result_from_data,
    contrast_factor,
    contrast_table,
    stretch_contrast,
)
from tests.fakes import FakeEngine


def _gray(value: int, size: tuple[int, int] = (4, 4)) -> Image.Image:
    return Image.new("L", size, color=value)


class TestContrast:
    """Tests for the contrast stretch applied before recognition."""

    def test_factor_above_one_for_positive_contrast(self) -> None:
        assert contrast_factor(1.5) == pytest.approx(259 * 256.5 / (255 * 257.5))
        assert contrast_factor(0) == pytest.approx(1.0)

    def test_table_fixes_midpoint_and_clamps(self) -> None:
        """Mid-grey is unchanged, extremes stay in range, order is preserved."""
        table = contrast_table(1.5)

        assert len(table) == 256
        assert table[128] == 128
        assert table[0] == 0
        assert table[255] == 255
        assert table[200] >= 200
        assert table[50] <= 50
        assert table == sorted(table)

    def test_stretch_returns_rgb_copy(self) -> None:
        """Grayscale input comes back as RGB with every channel mapped alike."""
        image = _gray(200)

        stretched = stretch_contrast(image)

        assert stretched.mode == "RGB"
        assert stretched.size == image.size
        expected = contrast_table()[200]
        assert stretched.getpixel((0, 0)) == (expected, expected, expected)
        assert image.mode == "L"

    def test_adapter_preprocess_matches_stretch(self) -> None:
        adapter = OcrAdapter(FakeEngine())

        assert adapter.preprocess(_gray(60)).tobytes() == stretch_contrast(_gray(60)).tobytes()


class TestAdapterInitialization:
    """Tests for shared, single-attempt initialization."""

    async def test_concurrent_initialize_opens_one_session(self) -> None:
        """Callers racing to initialize share a single engine call."""
        engine = FakeEngine(delay=0.05)
        adapter = OcrAdapter(engine)

        await asyncio.gather(*(adapter.initialize() for _ in range(5)))

        assert engine.open_calls == 1
        assert adapter.state is OcrState.READY
        assert adapter.initialization_attempted

        await adapter.terminate()

    async def test_repeat_initialize_is_noop(self) -> None:
        engine = FakeEngine()
        adapter = OcrAdapter(engine)

        await adapter.initialize()
        await adapter.initialize()

        assert engine.open_calls == 1
        await adapter.terminate()

    async def test_failure_is_recorded_and_not_retried(self) -> None:
        """A failed open is remembered; later calls re-raise without retrying."""
        engine = FakeEngine(fail=True)
        adapter = OcrAdapter(engine)

        with pytest.raises(OcrInitializationError, match="tesseract is not installed"):
            await adapter.initialize()
        with pytest.raises(OcrInitializationError):
            await adapter.initialize()

        assert engine.open_calls == 1
        assert adapter.state is OcrState.FAILED
        assert adapter.failure is not None
        assert adapter.failure.message.startswith("OCR engine failed to initialize")
        assert adapter.failure.recoverable

    async def test_concurrent_failure_shared(self) -> None:
        engine = FakeEngine(fail=True, delay=0.05)
        adapter = OcrAdapter(engine)

        results = await asyncio.gather(
            *(adapter.initialize() for _ in range(3)), return_exceptions=True
        )

        assert all(isinstance(r, OcrInitializationError) for r in results)
        assert engine.open_calls == 1

    async def test_not_attempted_until_initialize(self) -> None:
        adapter = OcrAdapter(FakeEngine())

        assert adapter.state is OcrState.UNINITIALIZED
        assert not adapter.initialization_attempted
        assert adapter.failure is None


class TestAdapterRecognition:
    """Tests for recognition through an initialized adapter."""

    async def test_recognize_before_initialize_raises(self) -> None:
        adapter = OcrAdapter(FakeEngine(["text"]))

        with pytest.raises(OcrRecognitionError, match="not ready"):
            await adapter.recognize(_gray(255))

    async def test_recognize_returns_engine_result(self) -> None:
        engine = FakeEngine(["first page", "second page"], confidences=[91.0, 140.0])

        async with OcrAdapter(engine) as adapter:
            await adapter.initialize()
            first = await adapter.recognize(_gray(255))
            second = await adapter.recognize(_gray(255))

        assert first.text == "first page"
        assert first.confidence == 91.0
        assert second.confidence == 100.0
        assert len(engine.sessions[0].images) == 2

    async def test_engine_errors_are_wrapped(self) -> None:
        engine = FakeEngine()

        def explode(image: Image.Image) -> None:
            raise ValueError("bad image")

        async with OcrAdapter(engine) as adapter:
            await adapter.initialize()
            engine.sessions[0].recognize = explode  # type: ignore[method-assign]

            with pytest.raises(OcrRecognitionError, match="bad image"):
                await adapter.recognize(_gray(255))


class TestAdapterTermination:
    """Tests for idempotent teardown."""

    async def test_terminate_before_initialize(self) -> None:
        engine = FakeEngine()
        adapter = OcrAdapter(engine)

        await adapter.terminate()
        await adapter.terminate()

        assert adapter.state is OcrState.TERMINATED
        assert engine.open_calls == 0

    async def test_terminate_closes_session(self) -> None:
        engine = FakeEngine()
        adapter = OcrAdapter(engine)
        await adapter.initialize()

        await adapter.terminate()
        await adapter.terminate()

        assert engine.sessions[0].closed
        assert adapter.state is OcrState.TERMINATED

    async def test_close_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        engine = FakeEngine(fail_close=True)
        adapter = OcrAdapter(engine)
        await adapter.initialize()

        await adapter.terminate()

        assert adapter.state is OcrState.TERMINATED
        assert "Failed to terminate OCR session" in caplog.text

    async def test_terminate_waits_for_inflight_initialize(self) -> None:
        """Terminating during initialization still closes the opened session."""
        engine = FakeEngine(delay=0.05)
        adapter = OcrAdapter(engine)
        pending = asyncio.ensure_future(adapter.initialize())
        await asyncio.sleep(0)

        await adapter.terminate()
        await pending

        assert engine.sessions[0].closed
        assert adapter.state is OcrState.TERMINATED

    async def test_initialize_after_terminate_raises(self) -> None:
        adapter = OcrAdapter(FakeEngine())
        await adapter.terminate()

        with pytest.raises(OcrInitializationError, match="terminated"):
            await adapter.initialize()


class TestTesseractWrappers:
    """Tests for the pytesseract-backed engine and session."""

    def test_result_from_data_groups_lines_and_paragraphs(self) -> None:
        data = {
            "text": ["", "Heat", "transfer", "basics", "", "Conduction", "noise"],
            "conf": [-1, 90, 80, 70, -1, 60, -1],
            "block_num": [1, 1, 1, 1, 1, 2, 2],
            "par_num": [1, 1, 1, 1, 1, 1, 1],
            "line_num": [0, 1, 1, 2, 0, 1, 1],
        }

        result = _result_from_data(data)

        assert result.text == "Heat transfer\nbasics\n\nConduction"
        assert result.confidence == pytest.approx(75.0)

    def test_result_from_empty_data(self) -> None:
        result = _result_from_data(
            {"text": [], "conf": [], "block_num": [], "par_num": [], "line_num": []}
        )

        assert result.text == ""
        assert result.confidence == 0.0

    def test_missing_binary_raises_initialization_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def not_found() -> str:
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", not_found)

        with pytest.raises(OcrInitializationError, match="not found"):
            TesseractEngine().open_session()

    def test_missing_language_raises_initialization_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        monkeypatch.setattr(pytesseract, "get_languages", lambda **kwargs: ["eng", "osd"])

        with pytest.raises(OcrInitializationError, match="deu"):
            TesseractEngine(language="eng+deu").open_session()

    def test_open_session_with_installed_language(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        monkeypatch.setattr(pytesseract, "get_languages", lambda **kwargs: ["eng", "osd"])

        session = TesseractEngine(language="eng").open_session()

        assert isinstance(session, TesseractSession)
        assert session.language == "eng"

    def test_session_uses_image_to_data(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            pytesseract,
            "image_to_data",
            lambda *args, **kwargs: {
                "text": ["Entropy"],
                "conf": [88],
                "block_num": [1],
                "par_num": [1],
                "line_num": [1],
            },
        )
        session = TesseractSession("eng")

        result = session.recognize(_gray(255))

        assert result.text == "Entropy"
        assert result.confidence == 88.0

    def test_sessions_keep_their_own_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Each call sees its session's binary and the global path is restored."""
        monkeypatch.setattr(pytesseract.pytesseract, "tesseract_cmd", "tesseract")
        seen: list[str] = []

        def fake_image_to_data(*args, **kwargs) -> dict:
            seen.append(pytesseract.pytesseract.tesseract_cmd)
            return {"text": [], "conf": [], "block_num": [], "par_num": [], "line_num": []}

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)

        TesseractSession("eng", tesseract_cmd="/opt/a/tesseract").recognize(_gray(255))
        TesseractSession("eng", tesseract_cmd="/opt/b/tesseract").recognize(_gray(255))

        assert seen == ["/opt/a/tesseract", "/opt/b/tesseract"]
        assert pytesseract.pytesseract.tesseract_cmd == "tesseract"

    def test_engine_checks_configured_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(pytesseract.pytesseract, "tesseract_cmd", "tesseract")
        seen: list[str] = []

        def fake_version() -> str:
            seen.append(pytesseract.pytesseract.tesseract_cmd)
            return "5.3.0"

        monkeypatch.setattr(pytesseract, "get_tesseract_version", fake_version)
        monkeypatch.setattr(pytesseract, "get_languages", lambda **kwargs: ["eng"])

        session = TesseractEngine(tesseract_cmd="/usr/local/bin/tesseract").open_session()

        assert seen == ["/usr/local/bin/tesseract"]
        assert session.tesseract_cmd == "/usr/local/bin/tesseract"
        assert pytesseract.pytesseract.tesseract_cmd == "tesseract"

    def test_closed_session_refuses_work(self) -> None:
        session = TesseractSession("eng")
        session.close()

        with pytest.raises(OcrRecognitionError, match="closed"):
            session.recognize(_gray(255))
