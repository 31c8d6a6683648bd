"""Single owner of a pipeline session.

The controller is the only thing the presentation layer talks to. It runs
intake validation, funnels every change through :class:`PipelineState`,
drives the (mock) backends and reports each outcome as one notification.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence, Tuple

from .clients import MockAnalyzer, MockClassifier
from .clock import AsyncioClock, Clock
from .config import PipelineConfig
from .errors import (
    AnalysisFailed,
    ClassificationFailed,
    InvalidFileType,
    NoFileSupplied,
    PipelineError,
)
from .events import record_event
from .intake import (
    NO_FILE,
    FileCandidate,
    IntakeResult,
    Rejected,
    accept,
    accept_drop,
    image_predicate,
    model_predicate,
)
from .models import (
    AnalysisBundle,
    ClassificationResult,
    Notification,
    Severity,
    SlotKind,
    UploadedFile,
)
from .notifications import LoggingNotificationSink, NotificationSink
from .state import PipelineState, PipelineView

LOGGER = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(
        self, image: UploadedFile, model: Optional[UploadedFile]
    ) -> Sequence[ClassificationResult]:
        ...


class Analyzer(Protocol):
    async def analyze(
        self, image: UploadedFile, results: Sequence[ClassificationResult]
    ) -> AnalysisBundle:
        ...


class PipelineController:
    """Coordinates uploads, classification and analysis for one session."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        clock: Optional[Clock] = None,
        sink: Optional[NotificationSink] = None,
        classifier: Optional[Classifier] = None,
        analyzer: Optional[Analyzer] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        clock = clock or AsyncioClock()
        self.state = PipelineState()
        self._sink = sink or LoggingNotificationSink()
        self._classifier = classifier or MockClassifier(
            clock, latency=self.config.classification_latency
        )
        self._analyzer = analyzer or MockAnalyzer(clock, latency=self.config.analysis_latency)
        self._image_predicate = image_predicate(self.config.image_mime_prefix)
        self._model_predicate = model_predicate(self.config.model_extensions)

    @property
    def view(self) -> PipelineView:
        return self.state.view()

    # -- uploads -----------------------------------------------------------

    def upload_image(self, candidate: Optional[FileCandidate]) -> bool:
        return self._store_image(accept(candidate, self._image_predicate))

    def drop_image(self, candidates: Sequence[FileCandidate]) -> bool:
        return self._store_image(accept_drop(candidates, self._image_predicate))

    def upload_model(self, candidate: Optional[FileCandidate]) -> bool:
        return self._store_model(accept(candidate, self._model_predicate))

    def drop_model(self, candidates: Sequence[FileCandidate]) -> bool:
        return self._store_model(accept_drop(candidates, self._model_predicate))

    def remove_image(self) -> None:
        self.state.clear_image()
        self._event("image_removed")

    def _store_image(self, result: IntakeResult) -> bool:
        file = self._unwrap(SlotKind.IMAGE, result)
        if file is None:
            return False
        self.state.set_image(file)
        self._event("image_intake", file=file.name, size_bytes=file.size_bytes)
        return True

    def _store_model(self, result: IntakeResult) -> bool:
        file = self._unwrap(SlotKind.MODEL, result)
        if file is None:
            return False
        try:
            self.state.set_model(file)
        except PipelineError as exc:
            self._fail("model_intake", exc)
            return False
        self._event("model_intake", file=file.name, size_bytes=file.size_bytes)
        self._notify("Model uploaded successfully", f"{file.name} is ready for use")
        return True

    def _unwrap(self, kind: SlotKind, result: IntakeResult) -> Optional[UploadedFile]:
        if isinstance(result, Rejected):
            error: PipelineError
            if result.reason == NO_FILE:
                error = NoFileSupplied(kind)
            else:
                error = InvalidFileType(kind)
            self._fail(f"{kind.value}_intake", error)
            return None
        return result.file

    # -- mock operations ---------------------------------------------------

    async def classify(self) -> bool:
        try:
            stamp = self.state.begin_classification()
        except PipelineError as exc:
            self._fail("classify", exc)
            return False

        try:
            results = await self._classifier.classify(stamp.image, stamp.model)
        except asyncio.CancelledError:
            self.state.fail_classification(stamp)
            raise
        except Exception:
            LOGGER.exception("Classification of %s failed", stamp.image.name)
            if self.state.fail_classification(stamp):
                self._fail("classify", ClassificationFailed())
            return False

        try:
            applied = self.state.complete_classification(stamp, results)
        except PipelineError as exc:
            self._fail("classify", exc)
            return False
        if not applied:
            self._event("classify", status="stale", file=stamp.image.name)
            return False

        top = self.state.results[0]
        self._event("classify", file=stamp.image.name, label=top.label, confidence=top.confidence)
        self._notify(
            "Classification complete",
            f"Embryo classified as {top.label} with {top.confidence * 100:.1f}% confidence",
        )
        return True

    async def analyze(self) -> bool:
        try:
            stamp = self.state.begin_analysis()
        except PipelineError as exc:
            self._fail("analyze", exc)
            return False

        try:
            bundle = await self._analyzer.analyze(stamp.image, stamp.results)
        except asyncio.CancelledError:
            self.state.fail_analysis(stamp)
            raise
        except Exception as exc:
            LOGGER.exception("Analysis of %s failed", stamp.image.name)
            if self.state.fail_analysis(stamp):
                self._fail("analyze", AnalysisFailed(str(exc) or "The analysis backend failed."))
            return False

        if not self.state.complete_analysis(stamp, bundle):
            self._event("analyze", status="stale", file=stamp.image.name)
            return False
        self._event("analyze", file=stamp.image.name, accuracy=bundle.metrics.accuracy)
        self._notify(
            "Analysis complete",
            "Detailed analysis and performance metrics are now available",
        )
        return True

    async def run(self, *, analyze: bool = True) -> Tuple[bool, PipelineView]:
        """Classify and, if requested, analyze the current uploads."""

        ok = await self.classify()
        if ok and analyze:
            ok = await self.analyze()
        return ok, self.view

    # -- reporting ---------------------------------------------------------

    def _fail(self, step: str, error: PipelineError) -> None:
        LOGGER.warning("%s rejected: %s", step, error.description)
        self._event(step, status="error", error=type(error).__name__, message=error.description)
        self._sink.notify(Notification(error.title, error.description, Severity.DESTRUCTIVE))

    def _notify(self, title: str, description: str) -> None:
        self._sink.notify(Notification(title, description, Severity.INFO))

    def _event(self, step: str, status: str = "ok", **fields: object) -> None:
        if self.config.event_log_path is not None:
            record_event(self.config.event_log_path, step, status, **fields)
