"""Stand-in classification and analysis backends.

Neither client loads a model or touches pixel data. They wait for a fixed
latency on the injected clock and return canned payloads, so the pipeline
can be exercised end to end without any inference stack.
"""

from __future__ import annotations

import logging
from base64 import b64encode
from typing import Optional, Sequence, Tuple

from .clock import AsyncioClock, Clock
from .labels import EmbryoLabel
from .models import (
    AnalysisBundle,
    ClassificationResult,
    PerformanceMetrics,
    PreprocessedImages,
    UploadedFile,
    rank_results,
)

LOGGER = logging.getLogger(__name__)

CLASSIFICATION_LATENCY = 2.0
ANALYSIS_LATENCY = 1.5

MOCK_RESULTS = (
    ("3-2-2", 0.87),
    ("2-2-2", 0.09),
    ("Morula", 0.03),
    ("2-1-3", 0.01),
)

MOCK_ACCURACY = 0.9234
MOCK_CONFUSION_MATRIX = (
    (45, 2, 1, 0, 1, 0, 1),
    (1, 38, 2, 1, 0, 1, 0),
    (0, 1, 42, 1, 0, 0, 1),
    (2, 0, 1, 35, 2, 1, 0),
    (0, 0, 0, 1, 28, 0, 0),
    (1, 0, 0, 0, 0, 33, 1),
    (0, 1, 0, 0, 1, 0, 31),
)
MOCK_CLASS_LABELS = tuple(label.value for label in EmbryoLabel)

_GRADIENT = (
    '<defs><linearGradient id="a" x1="0%" y1="0%" x2="100%" y2="100%">'
    '<stop offset="0%" stop-color="#eeeeee"/><stop offset="100%" stop-color="#999999"/>'
    "</linearGradient></defs>"
)


def placeholder_image(caption: str, background: str, foreground: str, defs: str = "") -> str:
    """Return a 200x200 SVG data URI showing ``caption``."""

    svg = (
        '<svg width="200" height="200" xmlns="http://www.w3.org/2000/svg">'
        f'{defs}<rect width="200" height="200" fill="{background}"/>'
        f'<text x="50%" y="50%" font-family="Arial" font-size="14" fill="{foreground}" '
        f'text-anchor="middle" dy=".3em">{caption}</text></svg>'
    )
    return "data:image/svg+xml;base64," + b64encode(svg.encode("utf-8")).decode("ascii")


class MockClassifier:
    """Pretends to run the uploaded model on the uploaded image."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        *,
        latency: float = CLASSIFICATION_LATENCY,
        results: Sequence[Tuple[str, float]] = MOCK_RESULTS,
    ) -> None:
        self._clock = clock or AsyncioClock()
        self._latency = latency
        self._results = rank_results(
            ClassificationResult(label=label, confidence=confidence)
            for label, confidence in results
        )

    async def classify(
        self, image: UploadedFile, model: Optional[UploadedFile]
    ) -> Tuple[ClassificationResult, ...]:
        LOGGER.debug(
            "Mock classification of %s with %s (%.1fs)",
            image.name,
            model.name if model else None,
            self._latency,
        )
        await self._clock.sleep(self._latency)
        return self._results


class MockAnalyzer:
    """Pretends to preprocess the image and score the model."""

    def __init__(self, clock: Optional[Clock] = None, *, latency: float = ANALYSIS_LATENCY) -> None:
        self._clock = clock or AsyncioClock()
        self._latency = latency

    async def analyze(
        self, image: UploadedFile, results: Sequence[ClassificationResult]
    ) -> AnalysisBundle:
        LOGGER.debug("Mock analysis of %s over %d results", image.name, len(results))
        await self._clock.sleep(self._latency)
        return self._mock_bundle()

    @staticmethod
    def _mock_bundle() -> AnalysisBundle:
        images = PreprocessedImages(
            grayscale=placeholder_image("Grayscale", "#f4f4f4", "#666666"),
            edge_detected=placeholder_image("Edge Detected", "#000000", "#ffffff"),
            histogram_equalized=placeholder_image(
                "Histogram Equalized", "url(#a)", "#333333", defs=_GRADIENT
            ),
        )
        metrics = PerformanceMetrics.build(
            accuracy=MOCK_ACCURACY,
            confusion_matrix=MOCK_CONFUSION_MATRIX,
            class_labels=MOCK_CLASS_LABELS,
        )
        return AnalysisBundle(images=images, metrics=metrics)
