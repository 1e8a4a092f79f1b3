"""Progress events emitted by the extraction pipeline.

The pipeline reports coarse milestones (document load, each page, chunking,
completion) to an optional listener. A listener is any callable that takes a
``ProgressEvent``. Notifications are fire-and-forget: a listener that raises
is logged and ignored, it can never fail the extraction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stage named in a progress event."""

    LOADING = "loading"
    EXTRACTING = "extracting"
    OCR = "ocr"
    CHUNKING = "chunking"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification.

    Attributes:
        stage: Pipeline stage.
        progress: Percentage complete, 0-100.
        message: Human-readable status line.
    """

    stage: Stage
    progress: float
    message: str


ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Delivers events to a listener, keeping percentages non-decreasing."""

    def __init__(self, listener: ProgressListener | None = None) -> None:
        self._listener = listener
        self._last = 0.0

    def report(self, stage: Stage, progress: float, message: str) -> None:
        self._last = max(self._last, min(100.0, progress))
        if self._listener is None:
            return
        event = ProgressEvent(stage=stage, progress=self._last, message=message)
        try:
            self._listener(event)
        except Exception:
            logger.exception("Progress listener failed on %s event", stage.value)


@dataclass
class ProgressRecorder:
    """Listener that keeps every event it receives."""

    events: list[ProgressEvent] = field(default_factory=list)

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def stages(self) -> list[Stage]:
        return [event.stage for event in self.events]


class LoggingProgressListener:
    """Listener that writes each event to a logger at INFO level."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def __call__(self, event: ProgressEvent) -> None:
        self._logger.info("[%s %3.0f%%] %s", event.stage.value, event.progress, event.message)
